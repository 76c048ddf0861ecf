"""Response models for the patient API endpoints."""
from typing import Dict, List, Optional
from pydantic import BaseModel

from backend.analytics.biomarkers import MarkerSeries
from backend.analytics.staging import StageTrajectory


class PatientListItem(BaseModel):
    """One row of the patient list."""
    patient_id: str
    name: Optional[str] = None
    primary_diagnosis: Optional[str] = None
    current_stage: Optional[str] = None


class PatientListResponse(BaseModel):
    """Patient list."""
    patients: List[PatientListItem]
    total: int


class TrajectoryResponse(BaseModel):
    """Stage trajectory with biomarker and tumor-size series."""
    patient_id: str
    stages: StageTrajectory
    tumor_size: MarkerSeries
    biomarkers: List[MarkerSeries]
    chart_marker: Optional[str] = None


class ReloadResponse(BaseModel):
    """Result of reloading the patient source."""
    patients_loaded: int
    cache_cleared: bool


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    components: Dict[str, bool]


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
