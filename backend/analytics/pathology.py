"""Pathology report normalization and report-to-report comparison."""
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from backend.analytics.comparator import (
    DEFAULT_MAX_DELTAS,
    FieldSpec,
    compare_latest,
    format_date_label,
    sort_newest_first,
)
from backend.analytics.trend_rules import DEFAULT_THRESHOLD_PCT, grade_rank
from backend.models.comparison import ComparisonResult
from backend.models.enums import TrendKind
from backend.models.patient import Patient, PathologyDetail

NO_REPORT_TEXT = (
    "No structured pathology report is available yet. "
    "Upload a report to unlock richer insights."
)
IHC_SUB_CAP = 6
IHC_SUMMARY_LIMIT = 4

_HISTOLOGY_KEYS: Dict[str, Sequence[str]] = {
    "histotype": ("type", "histologic_type", "histotype"),
    "grade": ("grade", "tumor_grade"),
    "tumor_size": ("tumor_size", "size", "dimension"),
    "margins": ("margins", "margin_status"),
    "lvi": ("lvi", "lymphovascular_invasion"),
    "pni": ("pni", "perineural_invasion"),
    "lymph_nodes": ("lymph_nodes", "nodal_status"),
}

_IHC_SPLIT = re.compile(r"[,;]+")
_IHC_PAIR = re.compile(r"[:=]")


class PathologyReport(BaseModel):
    """One structured pathology report with histology fields flattened."""
    date: Optional[str] = None
    date_label: str
    procedure: Optional[str] = None
    site: Optional[str] = None
    diagnosis: Optional[str] = None
    histotype: Optional[str] = None
    grade: Optional[str] = None
    tumor_size: Optional[str] = None
    margins: Optional[str] = None
    lvi: Optional[str] = None
    pni: Optional[str] = None
    lymph_nodes: Optional[str] = None
    ihc_panel: Dict[str, str] = Field(default_factory=dict)


def coerce_string(value: Any) -> Optional[str]:
    """Scalar JSON value as text; containers and blanks become None."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _pick(bag: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        candidate = coerce_string(bag.get(key))
        if candidate:
            return candidate
    return None


def parse_ihc_text(text: Optional[str]) -> Dict[str, str]:
    """Parse "ER: +, PR = -; HER2: 1+" into a marker map."""
    panel: Dict[str, str] = {}
    if not text:
        return panel
    for token in _IHC_SPLIT.split(text):
        parts = [segment.strip() for segment in _IHC_PAIR.split(token.strip(), maxsplit=1)]
        if len(parts) == 2 and parts[0] and parts[1]:
            panel[parts[0]] = parts[1]
    return panel


def normalize_ihc_panel(panel: Dict[str, Any], fallback: Optional[str]) -> Dict[str, str]:
    """Coerce panel values to text; an empty panel falls back to the patient-level markers."""
    normalized = {}
    for marker, value in panel.items():
        text = coerce_string(value)
        if text:
            normalized[str(marker)] = text
    if not normalized:
        return parse_ihc_text(fallback)
    return normalized


def _normalize_report(detail: PathologyDetail, patient: Patient) -> PathologyReport:
    histology = detail.histology or {}
    picked = {name: _pick(histology, keys) for name, keys in _HISTOLOGY_KEYS.items()}
    return PathologyReport(
        date=detail.date,
        date_label=format_date_label(detail.date),
        procedure=detail.procedure,
        site=detail.site,
        diagnosis=detail.diagnosis_text or coerce_string(histology.get("diagnosis")),
        histotype=picked["histotype"] or detail.diagnosis_text or patient.histologic_type,
        grade=picked["grade"] or patient.tumor_grade,
        tumor_size=picked["tumor_size"],
        margins=picked["margins"] or patient.margin_status,
        lvi=picked["lvi"],
        pni=picked["pni"],
        lymph_nodes=picked["lymph_nodes"],
        ihc_panel=normalize_ihc_panel(detail.ihc_panel, patient.ihc_markers),
    )


def normalize_reports(patient: Patient) -> List[PathologyReport]:
    """Structured pathology reports, newest-first."""
    reports = [_normalize_report(detail, patient) for detail in patient.pathology_details]
    return sort_newest_first(reports, lambda report: report.date)


def single_report_summary(report: PathologyReport) -> str:
    """Narrative for a lone report: histotype, grade, size, margins, site, invasion, IHC."""
    highlights = ", ".join(
        part for part in (
            report.histotype,
            f"graded {report.grade}" if report.grade else None,
            f"measuring {report.tumor_size}" if report.tumor_size else None,
            f"margins {report.margins.lower()}" if report.margins else None,
        )
        if part
    )
    source = "Latest pathology"
    if report.site:
        source += f" from {report.site}"
    if report.date:
        source += f" ({report.date_label})"

    sentences = []
    if highlights:
        sentences.append(f"{source} documents {highlights}.")
    else:
        sentences.append(f"{source} has no structured histology findings.")

    invasion = "; ".join(
        note for note in (
            f"LVI {report.lvi}" if report.lvi else None,
            f"PNI {report.pni}" if report.pni else None,
        )
        if note
    )
    if invasion:
        sentences.append(f"Invasion status: {invasion}.")

    if report.ihc_panel:
        profile = ", ".join(
            f"{marker} ({value})"
            for marker, value in list(report.ihc_panel.items())[:IHC_SUMMARY_LIMIT]
        )
        sentences.append(f"IHC profile features {profile}.")

    return " ".join(sentences)


def _text_field(label: str, attribute: str) -> FieldSpec[PathologyReport]:
    return FieldSpec(label=label, extract=lambda report: getattr(report, attribute))


def _presence_field(label: str, attribute: str) -> FieldSpec[PathologyReport]:
    return FieldSpec(
        label=label,
        extract=lambda report: getattr(report, attribute),
        kind=TrendKind.PRESENCE,
    )


def _ihc_fields(latest: PathologyReport, previous: PathologyReport) -> List[FieldSpec[PathologyReport]]:
    markers = list(dict.fromkeys([*previous.ihc_panel, *latest.ihc_panel]))
    return [
        FieldSpec(label=f"IHC {marker}", extract=lambda report, m=marker: report.ihc_panel.get(m))
        for marker in markers
    ]


def pathology_fields(threshold_pct: float = DEFAULT_THRESHOLD_PCT) -> List[FieldSpec[PathologyReport]]:
    """Fixed pathology fields in priority order."""
    return [
        FieldSpec(label="Grade", extract=lambda report: report.grade, kind=TrendKind.ORDINAL, rank=grade_rank),
        FieldSpec(
            label="Tumor size",
            extract=lambda report: report.tumor_size,
            kind=TrendKind.MAGNITUDE,
            threshold_pct=threshold_pct,
        ),
        _presence_field("Margins", "margins"),
        _presence_field("Lymphovascular invasion", "lvi"),
        _presence_field("Perineural invasion", "pni"),
        _presence_field("Nodal status", "lymph_nodes"),
    ]


def compare_reports(
    reports: Sequence[PathologyReport],
    max_deltas: int = DEFAULT_MAX_DELTAS,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
) -> ComparisonResult:
    """
    Compare the latest pathology report against the previous one.

    Args:
        reports: Reports sorted newest-first (see ``normalize_reports``)
        max_deltas: Cap on returned deltas
        threshold_pct: Relative change that makes a tumor-size shift a trend

    Returns:
        ComparisonResult; deltas are empty for fewer than two reports
    """
    return compare_latest(
        reports,
        pathology_fields(threshold_pct),
        summarize_single=single_report_summary,
        empty_narrative=NO_REPORT_TEXT,
        dynamic_fields=_ihc_fields,
        trailing_fields=[_text_field("Histology", "histotype")],
        dynamic_cap=IHC_SUB_CAP,
        max_deltas=max_deltas,
        date_of=lambda report: report.date,
        label_of=lambda report: report.date_label,
    )


def pathology_summary(patient: Patient, reports: Optional[Sequence[PathologyReport]] = None) -> str:
    """Single-line pathology summary, from the latest report or patient-level text."""
    if reports is None:
        reports = normalize_reports(patient)
    if reports:
        return single_report_summary(reports[0])
    return patient.pathology_diagnosis_text or patient.histologic_type or NO_REPORT_TEXT
