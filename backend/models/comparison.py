"""Result models for latest-vs-previous longitudinal comparison."""
from typing import List, Optional

from pydantic import BaseModel, Field

from .enums import DeltaTrend


class Delta(BaseModel):
    """One tracked field's change between the previous and latest record."""
    marker: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    trend: DeltaTrend


class ComparisonResult(BaseModel):
    """Narrative synthesis plus structured deltas for one record sequence."""
    narrative: str
    deltas: List[Delta] = Field(default_factory=list)
    record_count: int = 0

    @property
    def has_comparison(self) -> bool:
        """True when two or more records were compared."""
        return self.record_count >= 2
