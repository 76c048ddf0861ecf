"""Per-request bundle of every deterministic derivation for one patient."""
from dataclasses import dataclass
from typing import List, Optional

from backend.analytics.biomarkers import (
    MarkerSeries,
    biomarker_series,
    select_chart_marker,
    tumor_size_series,
)
from backend.analytics.pathology import (
    PathologyReport,
    compare_reports,
    normalize_reports,
    pathology_summary,
)
from backend.analytics.staging import StageTrajectory, compare_stages
from backend.config.settings import get_settings
from backend.models.comparison import ComparisonResult, Delta
from backend.models.insights import Investigations
from backend.models.patient import Patient


@dataclass(frozen=True)
class PatientAnalysis:
    """
    Derived analytics computed once per request.

    The fallback insight builder, the insight reconciler, the clinical summary
    builder and the API routes all read from the same bundle, so a patient's
    pathology reports are parsed and compared only once per request.
    """
    patient: Patient
    reports: List[PathologyReport]
    pathology: ComparisonResult
    pathology_summary: str
    stages: StageTrajectory
    biomarkers: List[MarkerSeries]
    tumor_size: MarkerSeries
    chart_marker: Optional[str]

    @classmethod
    def build(
        cls,
        patient: Patient,
        threshold_pct: Optional[float] = None,
        max_deltas: Optional[int] = None,
    ) -> "PatientAnalysis":
        """Run every derivation; thresholds default to the configured values."""
        settings = get_settings()
        threshold = settings.trend_threshold_pct if threshold_pct is None else threshold_pct
        cap = settings.max_pathology_deltas if max_deltas is None else max_deltas

        reports = normalize_reports(patient)
        biomarkers = biomarker_series(patient, threshold)
        return cls(
            patient=patient,
            reports=reports,
            pathology=compare_reports(reports, max_deltas=cap, threshold_pct=threshold),
            pathology_summary=pathology_summary(patient, reports),
            stages=compare_stages(patient),
            biomarkers=biomarkers,
            tumor_size=tumor_size_series(patient, threshold),
            chart_marker=select_chart_marker(biomarkers),
        )

    @property
    def report_count(self) -> int:
        return len(self.reports)

    @property
    def pathology_deltas(self) -> Optional[List[Delta]]:
        """None without structured reports, [] for one, the capped deltas for two or more."""
        if not self.reports:
            return None
        if len(self.reports) == 1:
            return []
        return list(self.pathology.deltas)

    @property
    def pathology_comparison_text(self) -> Optional[str]:
        """Comparison narrative; None without structured reports."""
        return self.pathology.narrative if self.reports else None

    def investigations(self, labs_summary: Optional[str] = None) -> Investigations:
        """Deterministic investigations block."""
        return Investigations(
            pathology_summary=self.pathology_summary,
            pathology_comparison_text=self.pathology_comparison_text,
            pathology_deltas=self.pathology_deltas,
            labs_summary=labs_summary,
        )

    def marker_series(self, marker: Optional[str]) -> Optional[MarkerSeries]:
        """Series for a marker name (case-insensitive)."""
        if not marker:
            return None
        wanted = marker.strip().casefold()
        for series in self.biomarkers:
            if series.marker.casefold() == wanted:
                return series
        return None
