"""Patient record, analytics and insight API routes."""
import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException

from backend.analytics.analysis import PatientAnalysis
from backend.analytics.display import PatientDisplay, build_patient_display
from backend.api.requests import ClinicalSummaryRequest
from backend.api.responses import (
    PatientListItem,
    PatientListResponse,
    ReloadResponse,
    TrajectoryResponse,
)
from backend.config.logging_config import get_logger
from backend.models.comparison import ComparisonResult
from backend.models.insights import ClinicalSummary, MasterAIResponse
from backend.models.patient import Patient
from backend.patient_data.exceptions import PatientNotFoundError, PatientSourceError
from backend.patient_data.repository import get_patient_repository
from backend.reasoning.clinical_summary import get_clinical_summary_service
from backend.reasoning.insight_cache import get_insight_cache
from backend.reasoning.insight_service import get_insight_service

logger = get_logger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])


async def _load_patient(patient_id: str) -> Patient:
    """Look up a patient off the event loop; unknown ids become 404."""
    repository = get_patient_repository()
    try:
        return await asyncio.to_thread(repository.get_patient_by_id, patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail=f"Patient not found: {patient_id}")
    except PatientSourceError as e:
        logger.error("Patient source unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Patient data source unavailable")


@router.get("", response_model=PatientListResponse)
async def list_patients():
    """
    List every patient in the source file.

    Returns:
        Id, name, diagnosis and current stage per patient
    """
    repository = get_patient_repository()
    try:
        patients = await asyncio.to_thread(repository.load_patients)
    except PatientSourceError as e:
        logger.error("Patient source unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Patient data source unavailable")

    items = [
        PatientListItem(
            patient_id=patient.patient_id,
            name=patient.name,
            primary_diagnosis=patient.primary_diagnosis,
            current_stage=patient.current_tnm_stage or patient.initial_tnm_stage,
        )
        for patient in patients
    ]
    return PatientListResponse(patients=items, total=len(items))


@router.post("/reload", response_model=ReloadResponse)
async def reload_patients():
    """Re-read the patient source and drop cached insights."""
    repository = get_patient_repository()
    try:
        count = await asyncio.to_thread(repository.reload)
    except PatientSourceError as e:
        logger.error("Patient reload failed", error=str(e))
        raise HTTPException(status_code=503, detail="Patient data source unavailable")
    get_insight_cache().clear()
    logger.info("Patients reloaded via API", patients=count)
    return ReloadResponse(patients_loaded=count, cache_cleared=True)


@router.get("/{patient_id}", response_model=Patient)
async def get_patient(patient_id: str):
    """Canonical patient record."""
    return await _load_patient(patient_id)


@router.get("/{patient_id}/insights", response_model=MasterAIResponse)
async def get_patient_insights(patient_id: str, refresh: bool = False):
    """
    Structured clinical intelligence object for one patient.

    Model output is used when it validates; otherwise the deterministic
    fallback is returned with ``insight_source`` set to "deterministic".

    Args:
        patient_id: Patient identifier
        refresh: Drop any cached result before generating

    Returns:
        MasterAIResponse
    """
    patient = await _load_patient(patient_id)
    service = get_insight_service()
    if refresh:
        service.cache.invalidate(patient.patient_id)
    return await service.get_insights(patient, PatientAnalysis.build(patient))


@router.get("/{patient_id}/pathology/comparison", response_model=ComparisonResult)
async def get_pathology_comparison(patient_id: str):
    """Latest-vs-previous pathology comparison."""
    patient = await _load_patient(patient_id)
    return PatientAnalysis.build(patient).pathology


@router.get("/{patient_id}/trajectory", response_model=TrajectoryResponse)
async def get_trajectory(patient_id: str):
    """Stage trajectory with biomarker and tumor-size series."""
    patient = await _load_patient(patient_id)
    analysis = PatientAnalysis.build(patient)
    return TrajectoryResponse(
        patient_id=patient.patient_id,
        stages=analysis.stages,
        tumor_size=analysis.tumor_size,
        biomarkers=analysis.biomarkers,
        chart_marker=analysis.chart_marker,
    )


@router.get("/{patient_id}/display", response_model=PatientDisplay)
async def get_display(patient_id: str):
    """Locally derived badges, tokens and lab entries."""
    patient = await _load_patient(patient_id)
    return build_patient_display(patient)


@router.post("/{patient_id}/clinical-summary", response_model=ClinicalSummary)
async def create_clinical_summary(patient_id: str, request: Optional[ClinicalSummaryRequest] = None):
    """
    Clinical summary for the PDF export.

    Args:
        patient_id: Patient identifier
        request: Optional edited patient record with the same id

    Returns:
        ClinicalSummary (model-written or deterministic)
    """
    if request is not None and request.patient is not None:
        if request.patient.patient_id != patient_id:
            raise HTTPException(status_code=400, detail="Patient id in body does not match path")
        patient = request.patient
    else:
        patient = await _load_patient(patient_id)
    return await get_clinical_summary_service().generate(patient, PatientAnalysis.build(patient))
