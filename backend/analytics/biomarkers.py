"""Biomarker and tumor-size trajectories (current, previous, peak, trough)."""
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from backend.analytics.comparator import FieldSpec, compare_latest, format_date_label, sort_newest_first
from backend.analytics.trend_rules import DEFAULT_THRESHOLD_PCT
from backend.models.comparison import Delta
from backend.models.enums import DeltaTrend, TrendKind
from backend.models.patient import Patient

TUMOR_SIZE_MARKER = "Sum of diameters"
MIN_CHART_POINTS = 2


class SeriesPoint(BaseModel):
    """One dated numeric reading."""
    date: Optional[str] = None
    value: float


class MarkerSeries(BaseModel):
    """Newest-first numeric series for one marker plus its latest-vs-previous delta."""
    marker: str
    unit: Optional[str] = None
    points: List[SeriesPoint] = Field(default_factory=list)
    latest: Optional[float] = None
    previous: Optional[float] = None
    peak: Optional[float] = None
    trough: Optional[float] = None
    point_count: int = 0
    chartable: bool = False
    narrative: str
    delta: Optional[Delta] = None
    trend: Optional[DeltaTrend] = None


def format_value(value: float) -> str:
    """Compact numeric text (125.0 -> "125")."""
    return f"{value:g}"


def build_series(
    marker: str,
    points: Sequence[SeriesPoint],
    unit: Optional[str] = None,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
) -> MarkerSeries:
    """
    Sort a marker's readings newest-first and compare the latest two.

    Args:
        marker: Display name of the marker
        points: Numeric readings in any order
        unit: Unit shown in narratives
        threshold_pct: Relative change that counts as a trend

    Returns:
        MarkerSeries with peak/trough and the comparator delta
    """
    ordered = sort_newest_first(list(points), lambda point: point.date)
    suffix = f" {unit}" if unit else ""
    spec = FieldSpec(
        label=marker,
        extract=lambda point: format_value(point.value),
        kind=TrendKind.MAGNITUDE,
        threshold_pct=threshold_pct,
    )
    comparison = compare_latest(
        ordered,
        [spec],
        summarize_single=lambda point: (
            f"Single {marker} reading of {format_value(point.value)}{suffix} "
            f"({format_date_label(point.date)})."
        ),
        empty_narrative=f"No numeric {marker} readings documented.",
        max_deltas=1,
        date_of=lambda point: point.date,
    )
    values = [point.value for point in ordered]
    delta = comparison.deltas[0] if comparison.deltas else None
    return MarkerSeries(
        marker=marker,
        unit=unit,
        points=ordered,
        latest=values[0] if values else None,
        previous=values[1] if len(values) > 1 else None,
        peak=max(values) if values else None,
        trough=min(values) if values else None,
        point_count=len(values),
        chartable=len(values) >= MIN_CHART_POINTS,
        narrative=comparison.narrative,
        delta=delta,
        trend=delta.trend if delta else None,
    )


def biomarker_series(patient: Patient, threshold_pct: float = DEFAULT_THRESHOLD_PCT) -> List[MarkerSeries]:
    """One series per named marker, in order of first appearance."""
    grouped: Dict[str, List[SeriesPoint]] = {}
    units: Dict[str, Optional[str]] = {}
    for point in patient.biomarker_trend:
        if not point.marker_name or point.value is None:
            continue
        name = point.marker_name.strip()
        grouped.setdefault(name, []).append(SeriesPoint(date=point.date, value=point.value))
        if units.get(name) is None:
            units[name] = point.unit
    return [
        build_series(name, points, units.get(name), threshold_pct)
        for name, points in grouped.items()
    ]


def tumor_size_series(patient: Patient, threshold_pct: float = DEFAULT_THRESHOLD_PCT) -> MarkerSeries:
    """Sum-of-diameters series from the RECIST trend."""
    points = [
        SeriesPoint(date=point.date, value=point.sum_of_diameters_mm)
        for point in patient.tumor_size_trend
        if point.sum_of_diameters_mm is not None
    ]
    return build_series(TUMOR_SIZE_MARKER, points, "mm", threshold_pct)


def select_chart_marker(series: Sequence[MarkerSeries]) -> Optional[str]:
    """Marker with the most numeric points; the first one wins ties."""
    best: Optional[MarkerSeries] = None
    for candidate in series:
        if best is None or candidate.point_count > best.point_count:
            best = candidate
    return best.marker if best else None
