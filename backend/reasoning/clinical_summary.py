"""Clinical summary for the PDF export: model narrative with a deterministic backstop."""
import asyncio
from typing import Any, Dict, List, Optional

from backend.analytics.analysis import PatientAnalysis
from backend.analytics.display import (
    first_documented,
    is_high_risk_comorbidity,
    performance_badge,
    recurrence_badge,
    resolve_driver_mutation,
    resolve_stage_text,
    resolve_therapy_status,
    resolve_trend_analysis,
    safety_badge,
    tokenize_comorbidities,
    NO_COMORBIDITIES,
)
from backend.analytics.staging import TRAJECTORY_METASTATIC, TRAJECTORY_PROGRESSION
from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.models.enums import DeltaTrend, InsightSource, RecurrenceTier, SafetyStatus, TaskCategory
from backend.models.insights import ClinicalSummary
from backend.models.patient import Patient
from backend.reasoning.fallback_insights import hematology_status
from backend.reasoning.llm_gateway import LLMGateway, LLMGatewayError, get_llm_gateway
from backend.reasoning.prompt_loader import PromptLoader, get_prompt_loader

logger = get_logger(__name__)

SYSTEM_PROMPT_PATH = "summary/clinical_summary.txt"
USER_PROMPT_PATH = "summary/patient_summary.txt"


def _profile_sentence(patient: Patient) -> str:
    subject = []
    if patient.age is not None:
        subject.append(f"{patient.age:g}-year-old")
    if first_documented(patient.sex):
        subject.append(patient.sex.strip().lower())
    subject.append("patient")
    sentence = " ".join(subject)

    diagnosis = first_documented(patient.primary_diagnosis)
    stage = resolve_stage_text(patient)
    if diagnosis:
        sentence += f" with {diagnosis}"
        if stage:
            sentence += f" ({stage})"
    elif stage:
        sentence += f", {stage}"

    performance = performance_badge(patient.performance_status)
    if performance.scale is not None:
        sentence += f", {performance.label}"

    details = [sentence[0].upper() + sentence[1:] + "."]
    driver = resolve_driver_mutation(patient)
    if driver:
        details.append(f"Molecular driver: {driver}.")
    if first_documented(patient.pd_l1_expression):
        details.append(f"PD-L1 {patient.pd_l1_expression.strip()}.")
    return " ".join(details)


def _therapy_sentence(patient: Patient, analysis: PatientAnalysis) -> str:
    parts = []
    therapy = resolve_therapy_status(patient)
    parts.append(f"Current therapy: {therapy}." if therapy else "No active therapy documented.")
    trend = resolve_trend_analysis(patient)
    if trend:
        parts.append(f"Radiology: {trend}.")
    if analysis.tumor_size.point_count:
        parts.append(analysis.tumor_size.narrative)
    return " ".join(parts)


def _safety_sentence(patient: Patient, analysis: PatientAnalysis) -> str:
    statuses = (
        ("renal", safety_badge(patient.renal_dysfunction_flag)),
        ("hepatic", safety_badge(patient.liver_dysfunction_flag)),
        ("hematologic", hematology_status(patient)),
    )
    sentence = "Organ safety: " + ", ".join(f"{organ} {status.value.lower()}" for organ, status in statuses) + "."
    marker = analysis.marker_series(analysis.chart_marker)
    if marker is not None and marker.point_count:
        sentence += f" {marker.narrative}"
    return sentence


def _synthesis_sentence(analysis: PatientAnalysis) -> str:
    trajectory = analysis.stages.trajectory
    if trajectory:
        return f"Clinical synthesis: {trajectory} ({analysis.stages.stage_summary})."
    return f"Clinical synthesis: {analysis.stages.stage_summary}."


def deterministic_risks(patient: Patient, analysis: PatientAnalysis) -> List[str]:
    risks = []
    if patient.renal_dysfunction_flag:
        risks.append("Renal dysfunction flagged")
    if patient.liver_dysfunction_flag:
        risks.append("Hepatic dysfunction flagged")
    heme = hematology_status(patient)
    if heme in (SafetyStatus.CAUTION, SafetyStatus.DANGER):
        risks.append(f"Hematologic {heme.value.lower()}: {patient.cbc_values or patient.abnormal_lab_flags}")
    for series in analysis.biomarkers:
        if series.trend == DeltaTrend.WORSENING:
            risks.append(f"Rising {series.marker}")
    if analysis.tumor_size.trend == DeltaTrend.WORSENING:
        risks.append("Increasing tumor burden")
    for delta in analysis.pathology_deltas or []:
        if delta.trend == DeltaTrend.WORSENING:
            risks.append(f"Pathology {delta.marker}: {delta.old_value} -> {delta.new_value}")
    recurrence = recurrence_badge(patient.recurrence_status)
    if recurrence.tier == RecurrenceTier.HIGH:
        risks.append(recurrence.label)
    for token in tokenize_comorbidities(patient):
        if token != NO_COMORBIDITIES and is_high_risk_comorbidity(token):
            risks.append(f"Comorbidity: {token}")
    return risks


def deterministic_recommendations(patient: Patient, analysis: PatientAnalysis) -> List[str]:
    recommendations = []
    if analysis.stages.trajectory in (TRAJECTORY_PROGRESSION, TRAJECTORY_METASTATIC):
        recommendations.append("Discuss next-line treatment options at tumor board")
    if patient.renal_dysfunction_flag or patient.liver_dysfunction_flag:
        recommendations.append("Review organ function and dose adjustments before next cycle")
    if hematology_status(patient) == SafetyStatus.DANGER:
        recommendations.append("Assess cytopenias before continuing therapy")
    for series in analysis.biomarkers:
        if series.trend == DeltaTrend.WORSENING:
            recommendations.append(f"Correlate rising {series.marker} with restaging imaging")
    if not recommendations:
        recommendations.append("Continue current plan with routine surveillance")
    return recommendations


def build_deterministic_summary(patient: Patient, analysis: Optional[PatientAnalysis] = None) -> ClinicalSummary:
    """
    Four-part summary (profile, therapy, safety, synthesis) from local data only.

    Args:
        patient: Canonical patient record
        analysis: Precomputed analytics bundle; built here when omitted

    Returns:
        ClinicalSummary tagged as deterministic
    """
    if analysis is None:
        analysis = PatientAnalysis.build(patient)

    narrative = " ".join([
        _profile_sentence(patient),
        _therapy_sentence(patient, analysis),
        _safety_sentence(patient, analysis),
        _synthesis_sentence(analysis),
    ])
    therapy = resolve_therapy_status(patient)
    one_liner = analysis.stages.stage_summary
    if therapy:
        one_liner = f"{one_liner} on {therapy}"
    return ClinicalSummary(
        clinical_narrative=narrative,
        status_one_liner=f"{one_liner}.",
        key_risks=deterministic_risks(patient, analysis),
        recommendations=deterministic_recommendations(patient, analysis),
        summary_source=InsightSource.DETERMINISTIC,
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def merge_summary(raw: Dict[str, Any], fallback: ClinicalSummary) -> ClinicalSummary:
    """Take the model's fields, filling blanks from the deterministic summary."""
    narrative = raw.get("clinical_narrative")
    narrative = first_documented(narrative) if isinstance(narrative, str) else None
    if not narrative:
        raise ValueError("Model summary has no clinical narrative")
    one_liner = raw.get("status_one_liner")
    one_liner = first_documented(one_liner) if isinstance(one_liner, str) else None
    return ClinicalSummary(
        clinical_narrative=narrative,
        status_one_liner=one_liner or fallback.status_one_liner,
        key_risks=_string_list(raw.get("key_risks")) or fallback.key_risks,
        recommendations=_string_list(raw.get("recommendations")) or fallback.recommendations,
        summary_source=InsightSource.AI,
    )


class ClinicalSummaryService:
    """Generates the export summary; never raises."""

    def __init__(
        self,
        gateway: LLMGateway,
        prompt_loader: PromptLoader,
        timeout_seconds: float = 40.0,
    ):
        self.gateway = gateway
        self.prompt_loader = prompt_loader
        self.timeout_seconds = timeout_seconds

    async def generate(self, patient: Patient, analysis: Optional[PatientAnalysis] = None) -> ClinicalSummary:
        """
        Clinical summary for a patient.

        Args:
            patient: Canonical patient record
            analysis: Precomputed analytics bundle for the same request

        Returns:
            Model-written summary with blanks backfilled, or the deterministic summary
        """
        if analysis is None:
            analysis = PatientAnalysis.build(patient)
        fallback = build_deterministic_summary(patient, analysis)

        try:
            raw = await asyncio.wait_for(self._request(patient), timeout=self.timeout_seconds)
            summary = merge_summary(raw, fallback)
        except asyncio.TimeoutError:
            logger.warning("Clinical summary timed out, using fallback", patient_id=patient.patient_id)
            return fallback
        except (LLMGatewayError, ValueError) as e:
            logger.warning("Clinical summary failed, using fallback", patient_id=patient.patient_id, error=str(e))
            return fallback
        except Exception as e:
            logger.error("Unexpected clinical summary error, using fallback", patient_id=patient.patient_id, error=str(e))
            return fallback

        logger.info("Clinical summary generated", patient_id=patient.patient_id, provider=raw.get("provider"))
        return summary

    async def _request(self, patient: Patient) -> Dict[str, Any]:
        system_prompt = self.prompt_loader.load(SYSTEM_PROMPT_PATH)
        prompt = self.prompt_loader.load(
            USER_PROMPT_PATH,
            {"patient_json": patient.model_dump(mode="json")},
        )
        return await self.gateway.generate(
            task_category=TaskCategory.CLINICAL_SUMMARY,
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=0.2,
            response_format="json",
        )


# Global instance
_summary_service: Optional[ClinicalSummaryService] = None


def get_clinical_summary_service() -> ClinicalSummaryService:
    """Get or create the global clinical summary service."""
    global _summary_service
    if _summary_service is None:
        _summary_service = ClinicalSummaryService(
            gateway=get_llm_gateway(),
            prompt_loader=get_prompt_loader(),
            timeout_seconds=get_settings().summary_timeout_seconds,
        )
    return _summary_service
