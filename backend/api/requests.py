"""Request models for the patient API endpoints."""
from typing import Optional
from pydantic import BaseModel, Field

from backend.models.patient import Patient


class ClinicalSummaryRequest(BaseModel):
    """Request for a clinical summary.

    The patient is normally looked up by the path id; an edited record can be
    posted instead, as long as it carries the same id.
    """
    patient: Optional[Patient] = Field(default=None, description="Patient record to summarize instead of the stored one")
