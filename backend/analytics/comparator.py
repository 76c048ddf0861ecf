"""Generic latest-vs-previous comparator for time-ordered clinical records.

Pathology reports, stage snapshots and biomarker series all go through
``compare_latest``; each caller only supplies field specs and narrative hooks.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from dateutil import parser as date_parser

from backend.analytics.trend_rules import (
    DEFAULT_THRESHOLD_PCT,
    classify_magnitude,
    classify_ordinal,
    classify_presence,
    numeric_token,
)
from backend.models.comparison import ComparisonResult, Delta
from backend.models.enums import DeltaTrend, TrendKind
from backend.patient_data.exceptions import UnsortedRecordsError

T = TypeVar("T")

DEFAULT_MAX_DELTAS = 6
DEFAULT_DYNAMIC_CAP = 6
UNDATED_LABEL = "Undated report"

_DATE_DEFAULT = datetime(1900, 1, 1)


@dataclass(frozen=True)
class FieldSpec(Generic[T]):
    """One tracked field: how to read it from a record and how to classify change."""
    label: str
    extract: Callable[[T], Optional[str]]
    kind: TrendKind = TrendKind.TEXT
    rank: Optional[Callable[[str], Optional[float]]] = None
    threshold_pct: float = DEFAULT_THRESHOLD_PCT


def parse_record_date(value: Optional[str]) -> datetime:
    """Parse a record date; missing or unparseable dates map to ``datetime.min``."""
    if not value or not isinstance(value, str) or not value.strip():
        return datetime.min
    try:
        parsed = date_parser.parse(value, default=_DATE_DEFAULT)
    except (ValueError, OverflowError, TypeError):
        return datetime.min
    return parsed.replace(tzinfo=None)


def format_date_label(value: Optional[str]) -> str:
    """Human date label ("Jun 1, 2023"); raw text when unparseable."""
    if not value or not value.strip():
        return UNDATED_LABEL
    parsed = parse_record_date(value)
    if parsed == datetime.min:
        return value.strip()
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def sort_newest_first(records: Sequence[T], date_of: Callable[[T], Optional[str]]) -> List[T]:
    """Stable newest-first sort; undated records go last in source order."""
    return sorted(records, key=lambda record: parse_record_date(date_of(record)), reverse=True)


def _check_sorted(records: Sequence[T], date_of: Callable[[T], Optional[str]]) -> None:
    dates = [parse_record_date(date_of(record)) for record in records]
    for newer, older in zip(dates, dates[1:]):
        if older > newer:
            raise UnsortedRecordsError("Records must be sorted newest-first before comparison")


def _same_value(old: str, new: str, kind: TrendKind) -> bool:
    if old.strip().casefold() == new.strip().casefold():
        return True
    if kind == TrendKind.MAGNITUDE:
        old_number = numeric_token(old)
        return old_number is not None and old_number == numeric_token(new)
    return False


def _classify(spec: FieldSpec, old: str, new: str) -> DeltaTrend:
    if spec.kind == TrendKind.ORDINAL and spec.rank is not None:
        return classify_ordinal(old, new, spec.rank)
    if spec.kind == TrendKind.MAGNITUDE:
        return classify_magnitude(old, new, spec.threshold_pct)
    if spec.kind == TrendKind.PRESENCE:
        return classify_presence(old, new)
    return DeltaTrend.STABLE


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_delta(spec: FieldSpec[T], latest: T, previous: T) -> Optional[Delta]:
    """
    Delta for one field, or None when there is nothing to report.

    A value that appears is ``new``; a value that disappears is ``stable``
    (absence is never evidence of improvement).
    """
    new = _clean(spec.extract(latest))
    old = _clean(spec.extract(previous))

    if old is None and new is None:
        return None
    if old is None:
        return Delta(marker=spec.label, old_value=None, new_value=new, trend=DeltaTrend.NEW)
    if new is None:
        return Delta(marker=spec.label, old_value=old, new_value=None, trend=DeltaTrend.STABLE)
    if _same_value(old, new, spec.kind):
        return None
    return Delta(marker=spec.label, old_value=old, new_value=new, trend=_classify(spec, old, new))


def describe_shift(delta: Delta) -> str:
    """One clause of the comparison narrative."""
    if delta.old_value is None:
        return f"{delta.marker} newly reported as {delta.new_value}"
    if delta.new_value is None:
        return f"{delta.marker} no longer documented (was {delta.old_value})"
    return f"{delta.marker} changed from {delta.old_value} to {delta.new_value}"


def compare_latest(
    records: Sequence[T],
    fields: Sequence[FieldSpec[T]],
    *,
    summarize_single: Callable[[T], str],
    empty_narrative: str,
    dynamic_fields: Optional[Callable[[T, T], Sequence[FieldSpec[T]]]] = None,
    trailing_fields: Sequence[FieldSpec[T]] = (),
    dynamic_cap: int = DEFAULT_DYNAMIC_CAP,
    max_deltas: int = DEFAULT_MAX_DELTAS,
    date_of: Optional[Callable[[T], Optional[str]]] = None,
    label_of: Optional[Callable[[T], str]] = None,
) -> ComparisonResult:
    """
    Compare the latest record against the previous one.

    Args:
        records: Records sorted newest-first
        fields: Fixed field specs in priority order
        summarize_single: Narrative builder for a lone record
        empty_narrative: Narrative when there are no records
        dynamic_fields: Extra specs derived from the two records (e.g. IHC
            markers), evaluated after ``fields`` and capped at ``dynamic_cap``
        trailing_fields: Lowest-priority specs, evaluated last
        max_deltas: Cap on the returned delta list
        date_of: Record date accessor; enables the sort-order precondition
        label_of: Record label used in the narrative

    Returns:
        ComparisonResult with narrative, capped deltas and the record count

    Raises:
        UnsortedRecordsError: If ``date_of`` is given, assertions are enabled and
            the records are not newest-first
    """
    if __debug__ and date_of is not None:
        _check_sorted(records, date_of)

    if not records:
        return ComparisonResult(narrative=empty_narrative, deltas=[], record_count=0)
    if len(records) == 1:
        return ComparisonResult(narrative=summarize_single(records[0]), deltas=[], record_count=1)

    latest, previous = records[0], records[1]
    deltas: List[Delta] = []

    for spec in fields:
        delta = build_delta(spec, latest, previous)
        if delta:
            deltas.append(delta)

    if dynamic_fields is not None:
        dynamic_deltas = []
        for spec in dynamic_fields(latest, previous):
            delta = build_delta(spec, latest, previous)
            if delta:
                dynamic_deltas.append(delta)
        deltas.extend(dynamic_deltas[:dynamic_cap])

    for spec in trailing_fields:
        delta = build_delta(spec, latest, previous)
        if delta:
            deltas.append(delta)

    deltas = deltas[:max_deltas]

    def describe(record: T, fallback: str) -> str:
        if label_of is not None:
            return label_of(record)
        if date_of is not None:
            return format_date_label(date_of(record))
        return fallback

    previous_label = describe(previous, "the previous record")
    latest_label = describe(latest, "the latest record")

    if not deltas:
        narrative = (
            f"No material changes detected between {previous_label} and {latest_label}. "
            "Continue routine surveillance unless new data emerges."
        )
    else:
        shifts = "; ".join(describe_shift(delta) for delta in deltas)
        narrative = (
            f"Between {previous_label} and {latest_label}, {shifts}. "
            "These findings should be reviewed in the context of the patient's clinical trajectory."
        )

    return ComparisonResult(narrative=narrative, deltas=deltas, record_count=len(records))
