"""Deterministic insight builder used whenever the model path cannot be trusted.

The builder is total (any Patient, including one with every optional field
unset, yields a complete MasterAIResponse) and reads no clock, so repeated
calls for the same patient return equal objects.
"""
import re
from typing import Optional

from backend.analytics.analysis import PatientAnalysis
from backend.analytics.display import (
    first_documented,
    resolve_current_strategy,
    resolve_disease_summary,
    resolve_driver_mutation,
    resolve_metastatic_status,
    resolve_stage_text,
    resolve_therapy_status,
    resolve_trend_analysis,
    safety_badge,
)
from backend.models.enums import InsightPriority, InsightSource, SafetyStatus
from backend.models.insights import (
    BiomarkerChart,
    ChartDirectives,
    DiagnosisTab,
    DynamicInsight,
    InvestigationTab,
    MasterAIResponse,
    SafetyFlag,
    SafetyFlags,
    SidebarInsights,
    TabNarratives,
    TreatmentTab,
    TumorSizeChart,
)
from backend.models.patient import NOT_DOCUMENTED, Patient

DETAIL_LIMIT = 40

NO_DRIVER = "No actionable mutation noted"
NO_THERAPY = "No active plan logged"
NO_DIAGNOSIS = "Primary diagnosis pending"
NO_DISEASE_SUMMARY = "Disease summary unavailable."
NO_TREND = "No structured radiology trend available."
NO_STRATEGY = "Plan not documented."
DEFAULT_MARKER = "Biomarker"

_HEME_DANGER = re.compile(r"severe|grade\s*[34]\b|critical", re.IGNORECASE)
_HEME_CAUTION = re.compile(r"low|anemia|thrombocytopenia|leukopenia|neutropenia", re.IGNORECASE)
_FLAG = re.compile(r"flag", re.IGNORECASE)


def _detail(text: Optional[str], missing: str) -> str:
    cleaned = first_documented(text)
    return cleaned[:DETAIL_LIMIT] if cleaned else missing


def hematology_status(patient: Patient) -> SafetyStatus:
    """CBC keyword screen; abnormal-lab "flag" mentions escalate to Caution."""
    cbc = first_documented(patient.cbc_values)
    if cbc and _HEME_DANGER.search(cbc):
        return SafetyStatus.DANGER
    if (cbc and _HEME_CAUTION.search(cbc)) or _FLAG.search(patient.abnormal_lab_flags or ""):
        return SafetyStatus.CAUTION
    if cbc:
        return SafetyStatus.SAFE
    return SafetyStatus.NOT_DOCUMENTED


def build_safety_flags(patient: Patient) -> SafetyFlags:
    return SafetyFlags(
        renal=SafetyFlag(
            status=safety_badge(patient.renal_dysfunction_flag),
            details=_detail(patient.cmp_values, "Creatinine trend unavailable"),
        ),
        liver=SafetyFlag(
            status=safety_badge(patient.liver_dysfunction_flag),
            details=_detail(patient.cmp_values, "LFTs unavailable"),
        ),
        hematology=SafetyFlag(
            status=hematology_status(patient),
            details=_detail(patient.cbc_values, "CBC data unavailable"),
        ),
    )


def labs_summary(patient: Patient) -> Optional[str]:
    """One line over the CBC, CMP and abnormal-flag columns; None when all are blank."""
    parts = []
    for label, value in (
        ("CBC", patient.cbc_values),
        ("CMP", patient.cmp_values),
        ("Electrolytes", patient.electrolytes),
        ("Flags", patient.abnormal_lab_flags),
    ):
        cleaned = first_documented(value)
        if cleaned:
            parts.append(f"{label}: {cleaned}")
    return "; ".join(parts) if parts else None


def status_summary(patient: Patient, analysis: PatientAnalysis) -> str:
    """Deterministic one-sentence status line."""
    diagnosis = first_documented(patient.primary_diagnosis) or "Diagnosis not documented"
    stage = resolve_stage_text(patient)
    therapy = resolve_therapy_status(patient)
    sentence = f"{diagnosis}, {stage}" if stage else diagnosis
    if therapy:
        sentence = f"{sentence}; current therapy: {therapy}"
    if analysis.stages.trajectory:
        sentence = f"{sentence} ({analysis.stages.trajectory})"
    return f"{sentence}."


def _chart_directives(analysis: PatientAnalysis) -> ChartDirectives:
    tumor = analysis.tumor_size
    marker_series = analysis.marker_series(analysis.chart_marker)
    biomarker_ready = marker_series is not None and marker_series.chartable
    return ChartDirectives(
        tumor_size=TumorSizeChart(
            should_render=tumor.chartable,
            reason=(
                f">=2 tumor measurements ({tumor.point_count})"
                if tumor.chartable else "Need at least 2 tumor measurements"
            ),
        ),
        biomarkers=BiomarkerChart(
            should_render=biomarker_ready,
            selected_marker=analysis.chart_marker or DEFAULT_MARKER,
            reason=(
                f">=2 {marker_series.marker} datapoints"
                if biomarker_ready else "Need at least 2 biomarker datapoints"
            ),
        ),
    )


def build_fallback_insights(
    patient: Patient,
    analysis: Optional[PatientAnalysis] = None,
) -> MasterAIResponse:
    """
    Build a complete MasterAIResponse from local data only.

    Args:
        patient: Canonical patient record
        analysis: Precomputed analytics bundle; built here when omitted

    Returns:
        MasterAIResponse with ``insight_source`` set to deterministic
    """
    if analysis is None:
        analysis = PatientAnalysis.build(patient)

    driver = resolve_driver_mutation(patient) or NO_DRIVER
    trend = resolve_trend_analysis(patient)
    if trend is None and analysis.tumor_size.chartable:
        trend = analysis.tumor_size.narrative

    return MasterAIResponse(
        current_status_summary=status_summary(patient, analysis),
        sidebar=SidebarInsights(
            dynamic_insights=[
                DynamicInsight(
                    label=first_documented(patient.primary_diagnosis) or NO_DIAGNOSIS,
                    value=driver,
                    priority=InsightPriority.HIGH,
                ),
                DynamicInsight(
                    label="Therapy status",
                    value=resolve_therapy_status(patient) or NO_THERAPY,
                    priority=InsightPriority.MEDIUM,
                ),
                DynamicInsight(
                    label="Metastatic status",
                    value=resolve_metastatic_status(patient) or NOT_DOCUMENTED,
                    priority=InsightPriority.MEDIUM,
                ),
            ],
            safety_flags=build_safety_flags(patient),
        ),
        charts=_chart_directives(analysis),
        tabs=TabNarratives(
            diagnosis=DiagnosisTab(
                mutation_highlight=driver,
                summary=resolve_disease_summary(patient) or NO_DISEASE_SUMMARY,
            ),
            investigation=InvestigationTab(trend_analysis=trend or NO_TREND),
            treatment=TreatmentTab(current_strategy=resolve_current_strategy(patient) or NO_STRATEGY),
        ),
        stage_summary=analysis.stages.stage_summary,
        investigations=analysis.investigations(labs_summary(patient)),
        insight_source=InsightSource.DETERMINISTIC,
    )
