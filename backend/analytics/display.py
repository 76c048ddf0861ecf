"""Derived display values: badges, comorbidity tokens, lab parsing, fallback chains.

Each ``resolve_*`` function is the single definition of a "first documented
value wins" chain; the fallback insight builder, the clinical summary builder
and the API all go through these instead of repeating the chain inline.
"""
import re
from typing import List, Optional

from pydantic import BaseModel, Field

from backend.analytics.staging import has_metastasis, stage_rank, trajectory_label
from backend.analytics.trend_rules import presence_state
from backend.models.enums import BadgeTone, PerformanceScale, RecurrenceTier, SafetyStatus
from backend.models.patient import NOT_DOCUMENTED, Patient
from backend.patient_data.normalizer import TRUE_TOKENS, to_number, to_percent

NO_COMORBIDITIES = "No documented comorbidities"
STATUS_UNKNOWN = "Status Unknown"
PERFORMANCE_UNKNOWN = "Performance not documented"

_COMORBIDITY_SPLIT = re.compile(r"[,;]| and ", re.IGNORECASE)
_NEGATION_TOKENS = {"no", "none", "n/a", "na", "not documented", "unremarkable"}
_NEGATION_PHRASE = re.compile(r"^no(\s|$)", re.IGNORECASE)
_HIGH_RISK_PATTERN = re.compile(r"diab|\bcad\b|htn|hyperten|card|heart", re.IGNORECASE)
_RECURRENCE_PATTERN = re.compile(r"recur|relaps|progression", re.IGNORECASE)
_LAB_SPLIT = re.compile(r"[\n;,]+")
_LAB_ENTRY = re.compile(r"^([^:=]+?)[\s:=]+(.+)$")
_SITE_SPLIT = re.compile(r"[,;]")


class PerformanceBadge(BaseModel):
    """ECOG or Karnofsky classification of the performance status text."""
    scale: Optional[PerformanceScale] = None
    score: Optional[float] = None
    label: str
    tone: BadgeTone = BadgeTone.NEUTRAL


class RecurrenceBadge(BaseModel):
    label: str
    tier: RecurrenceTier


class ComorbidityToken(BaseModel):
    label: str
    high_risk: bool = False


class LabEntry(BaseModel):
    label: str
    value: str = ""


class PatientDisplay(BaseModel):
    """Everything the dashboard derives locally from one Patient."""
    patient_id: str
    performance: PerformanceBadge
    comorbidities: List[ComorbidityToken] = Field(default_factory=list)
    recurrence: RecurrenceBadge
    initial_stage_rank: Optional[int] = None
    current_stage_rank: Optional[int] = None
    metastatic: bool = False
    trajectory: Optional[str] = None
    metastatic_sites: List[str] = Field(default_factory=list)
    driver_mutation: Optional[str] = None
    pd_l1_percent: Optional[float] = None
    renal_status: SafetyStatus
    liver_status: SafetyStatus
    cbc: List[LabEntry] = Field(default_factory=list)
    cmp: List[LabEntry] = Field(default_factory=list)
    electrolytes: List[LabEntry] = Field(default_factory=list)


def performance_badge(text: Optional[str]) -> PerformanceBadge:
    """
    Classify a performance status as ECOG (0-5) or Karnofsky (0-100%).

    Karnofsky is inferred from the word "karnofsky", a percent sign, or a
    value above 5. KPS >= 80 is favorable and >= 60 intermediate; ECOG <= 1 is
    favorable, 2 intermediate, 3 and above poor.
    """
    cleaned = (text or "").strip()
    score = to_number(cleaned)
    if not cleaned or score is None:
        return PerformanceBadge(label=PERFORMANCE_UNKNOWN)

    is_karnofsky = "karnofsky" in cleaned.lower() or "%" in cleaned or score > 5
    if is_karnofsky:
        kps = float(round(min(100.0, max(0.0, score))))
        if kps >= 80:
            tone = BadgeTone.FAVORABLE
        elif kps >= 60:
            tone = BadgeTone.INTERMEDIATE
        else:
            tone = BadgeTone.POOR
        return PerformanceBadge(scale=PerformanceScale.KARNOFSKY, score=kps, label=f"KPS {kps:g}%", tone=tone)

    if score < 0:
        return PerformanceBadge(label=PERFORMANCE_UNKNOWN)
    if score <= 1:
        tone = BadgeTone.FAVORABLE
    elif score == 2:
        tone = BadgeTone.INTERMEDIATE
    else:
        tone = BadgeTone.POOR
    return PerformanceBadge(scale=PerformanceScale.ECOG, score=score, label=f"ECOG {score:g}", tone=tone)


def _is_negation(token: str) -> bool:
    if token.lower() in _NEGATION_TOKENS:
        return True
    return bool(_NEGATION_PHRASE.match(token)) and len(token.split()) <= 3


def tokenize_comorbidities(patient: Patient) -> List[str]:
    """Split the comorbidity columns into unique tokens, dropping negations."""
    sources = [
        ("Diabetes", patient.diabetes),
        ("Hypertension", patient.hypertension),
        ("Heart disease", patient.heart_disease),
        ("COPD / asthma", patient.copd_asthma),
        (None, patient.other_relevant_comorbidities),
    ]
    tokens: List[str] = []
    for condition, source in sources:
        if not source:
            continue
        for token in _COMORBIDITY_SPLIT.split(source):
            token = token.strip()
            # A bare "Yes" in a condition column names the condition itself
            if condition and token.lower() in TRUE_TOKENS:
                token = condition
            if token and not _is_negation(token) and token not in tokens:
                tokens.append(token)
    return tokens or [NO_COMORBIDITIES]


def is_high_risk_comorbidity(token: str) -> bool:
    """Diabetes, hypertension and cardiac disease are flagged for dosing review."""
    return bool(_HIGH_RISK_PATTERN.search(token))


def recurrence_badge(status: Optional[str]) -> RecurrenceBadge:
    cleaned = (status or "").strip()
    if not cleaned:
        return RecurrenceBadge(label=STATUS_UNKNOWN, tier=RecurrenceTier.UNKNOWN)
    # "No recurrence" names the event only to negate it
    if _RECURRENCE_PATTERN.search(cleaned) and presence_state(cleaned) is not False:
        return RecurrenceBadge(label=cleaned, tier=RecurrenceTier.HIGH)
    return RecurrenceBadge(label=cleaned, tier=RecurrenceTier.BASELINE)


def safety_badge(flag: Optional[bool]) -> SafetyStatus:
    """Organ flag -> badge. Unknown stays "Not documented", never "Safe"."""
    if flag is None:
        return SafetyStatus.NOT_DOCUMENTED
    return SafetyStatus.CAUTION if flag else SafetyStatus.SAFE


def parse_lab_string(text: Optional[str]) -> List[LabEntry]:
    """Split "Hb 10.2; WBC: 4.1, Plt=150" into label/value entries."""
    if not text:
        return []
    entries = []
    for raw in _LAB_SPLIT.split(text):
        entry = raw.strip()
        if not entry:
            continue
        match = _LAB_ENTRY.match(entry)
        if match:
            entries.append(LabEntry(label=match.group(1).strip(), value=match.group(2).strip()))
            continue
        parts = entry.split()
        if len(parts) >= 2:
            entries.append(LabEntry(label=" ".join(parts[:-1]), value=parts[-1]))
        else:
            entries.append(LabEntry(label=entry))
    return entries


def pd_l1_percent(patient: Patient) -> Optional[float]:
    return to_percent(patient.pd_l1_expression)


def format_metastatic_sites(patient: Patient) -> List[str]:
    if not patient.metastatic_sites:
        return []
    return [site.strip() for site in _SITE_SPLIT.split(patient.metastatic_sites) if site.strip()]


def first_documented(*values: Optional[str]) -> Optional[str]:
    """First non-blank value, trimmed."""
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def resolve_driver_mutation(patient: Patient) -> Optional[str]:
    """Actionable summary, then EGFR, ALK, ROS1, KRAS, BRAF; negative results are skipped."""
    summary = first_documented(patient.actionable_mutation_summary)
    if summary:
        return summary
    for candidate in (
        patient.egfr_mutation,
        patient.alk_rearrangement,
        patient.ros1_rearrangement,
        patient.kras_mutation,
        patient.braf_mutation,
    ):
        value = first_documented(candidate)
        if value and presence_state(value) is not False:
            return value
    return None


def resolve_stage_text(patient: Patient) -> Optional[str]:
    return first_documented(patient.current_tnm_stage, patient.initial_tnm_stage)


def resolve_therapy_status(patient: Patient) -> Optional[str]:
    return first_documented(patient.current_line_of_therapy, patient.treatment_plan_summary)


def resolve_metastatic_status(patient: Patient) -> Optional[str]:
    return first_documented(patient.metastatic_status, patient.recurrence_status)


def resolve_disease_summary(patient: Patient) -> Optional[str]:
    return first_documented(patient.overall_disease_course_summary, patient.histopathologic_features)


def resolve_trend_analysis(patient: Patient) -> Optional[str]:
    return first_documented(patient.radiology_trend, patient.radiology_impression_keywords)


def resolve_current_strategy(patient: Patient) -> Optional[str]:
    return first_documented(patient.treatment_plan_summary, patient.current_line_of_therapy)


def resolve_pathology_text(patient: Patient) -> Optional[str]:
    return first_documented(patient.pathology_diagnosis_text, patient.histopathologic_features)


def display_text(value: Optional[str]) -> str:
    """Render an undocumented value with the shared sentinel label."""
    return first_documented(value) or NOT_DOCUMENTED


def build_patient_display(patient: Patient) -> PatientDisplay:
    """Collect every locally derived display value for one patient."""
    return PatientDisplay(
        patient_id=patient.patient_id,
        performance=performance_badge(patient.performance_status),
        comorbidities=[
            ComorbidityToken(label=token, high_risk=token != NO_COMORBIDITIES and is_high_risk_comorbidity(token))
            for token in tokenize_comorbidities(patient)
        ],
        recurrence=recurrence_badge(patient.recurrence_status),
        initial_stage_rank=stage_rank(patient.initial_tnm_stage),
        current_stage_rank=stage_rank(patient.current_tnm_stage),
        metastatic=has_metastasis(resolve_stage_text(patient)),
        trajectory=trajectory_label(patient.initial_tnm_stage, patient.current_tnm_stage),
        metastatic_sites=format_metastatic_sites(patient),
        driver_mutation=resolve_driver_mutation(patient),
        pd_l1_percent=pd_l1_percent(patient),
        renal_status=safety_badge(patient.renal_dysfunction_flag),
        liver_status=safety_badge(patient.liver_dysfunction_flag),
        cbc=parse_lab_string(patient.cbc_values),
        cmp=parse_lab_string(patient.cmp_values),
        electrolytes=parse_lab_string(patient.electrolytes),
    )
