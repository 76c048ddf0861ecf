"""Data models for the OncoSight backend."""
from .enums import (
    TaskCategory,
    LLMProvider,
    FieldKind,
    TrendKind,
    DeltaTrend,
    SafetyStatus,
    InsightPriority,
    InsightSource,
)
from .patient import (
    NOT_DOCUMENTED,
    Patient,
    TreatmentEvent,
    TumorSizePoint,
    BiomarkerPoint,
    PathologyDetail,
    DocumentLink,
    RadiologyDocument,
)
from .comparison import Delta, ComparisonResult
from .insights import MasterAIResponse, PathologyDelta, ClinicalSummary, Investigations

__all__ = [
    "TaskCategory",
    "LLMProvider",
    "FieldKind",
    "TrendKind",
    "DeltaTrend",
    "SafetyStatus",
    "InsightPriority",
    "InsightSource",
    "NOT_DOCUMENTED",
    "Patient",
    "TreatmentEvent",
    "TumorSizePoint",
    "BiomarkerPoint",
    "PathologyDetail",
    "DocumentLink",
    "RadiologyDocument",
    "Delta",
    "ComparisonResult",
    "MasterAIResponse",
    "PathologyDelta",
    "ClinicalSummary",
    "Investigations",
]
