"""Trend classification rules shared by every longitudinal comparison."""
import re
from typing import Callable, Optional

from backend.models.enums import DeltaTrend
from backend.patient_data.normalizer import to_number

DEFAULT_THRESHOLD_PCT = 20.0

# Checked before the positive patterns so "not involved" never reads as involved
_NEGATIVE_PATTERN = re.compile(
    r"negative|\bneg\b|\bclear\b|not\s+involved|uninvolved|absent|\bfree\b|not\s+identified|not\s+detected|"
    r"not\s+seen|wild[-\s]?type|\bno\b|\bnone\b",
    re.IGNORECASE,
)
_POSITIVE_PATTERN = re.compile(
    r"present|positive|\bpos\b|involved|identified|\byes\b|\+",
    re.IGNORECASE,
)

_GRADE_PATTERN = re.compile(r"(?:\bg|grade)\s*([1-4])\b", re.IGNORECASE)
_BARE_DIGIT_PATTERN = re.compile(r"^\s*([1-4])\s*$")
_ROMAN_GRADE_PATTERN = re.compile(r"grade\s*(iv|iii|ii|i)\b", re.IGNORECASE)
_ROMAN_VALUES = {"i": 1, "ii": 2, "iii": 3, "iv": 4}


def numeric_token(text: Optional[str]) -> Optional[float]:
    """First decimal number in a text value ("3.2 cm" -> 3.2)."""
    return to_number(text)


def presence_state(text: Optional[str]) -> Optional[bool]:
    """True for a positive/present finding, False for negative, None if unclear."""
    if not text:
        return None
    if _NEGATIVE_PATTERN.search(text):
        return False
    if _POSITIVE_PATTERN.search(text):
        return True
    return None


def grade_rank(text: Optional[str]) -> Optional[float]:
    """
    Histologic grade as an ordinal 1-4.

    Accepts "G3", "Grade 2", "grade III", a bare digit, or the descriptive
    terms (poorly/high = 3, moderately = 2, well/low = 1).
    """
    if not text:
        return None
    match = _GRADE_PATTERN.search(text) or _BARE_DIGIT_PATTERN.match(text)
    if match:
        return float(match.group(1))
    roman = _ROMAN_GRADE_PATTERN.search(text)
    if roman:
        return float(_ROMAN_VALUES[roman.group(1).lower()])
    lowered = text.lower()
    if "poor" in lowered or "high" in lowered:
        return 3.0
    if "mod" in lowered:
        return 2.0
    if "well" in lowered or "low" in lowered:
        return 1.0
    return None


def classify_ordinal(
    old: str,
    new: str,
    rank: Callable[[str], Optional[float]],
) -> DeltaTrend:
    """Higher rank is worse; unrankable values are stable."""
    old_rank = rank(old)
    new_rank = rank(new)
    if old_rank is None or new_rank is None or old_rank == new_rank:
        return DeltaTrend.STABLE
    return DeltaTrend.WORSENING if new_rank > old_rank else DeltaTrend.IMPROVING


def classify_magnitude(
    old: str,
    new: str,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
) -> DeltaTrend:
    """
    Classify a numeric change against a relative threshold.

    A change strictly above ``threshold_pct`` percent of the previous value is a
    trend: increase = worsening, decrease = improving. Anything within the
    threshold, or unparseable, is stable. From a previous value of zero any
    increase counts as worsening.
    """
    old_value = numeric_token(old)
    new_value = numeric_token(new)
    if old_value is None or new_value is None or old_value == new_value:
        return DeltaTrend.STABLE

    if old_value == 0:
        return DeltaTrend.WORSENING if new_value > 0 else DeltaTrend.IMPROVING

    change_pct = (new_value - old_value) / abs(old_value) * 100.0
    if change_pct > threshold_pct:
        return DeltaTrend.WORSENING
    if change_pct < -threshold_pct:
        return DeltaTrend.IMPROVING
    return DeltaTrend.STABLE


def classify_presence(old: str, new: str) -> DeltaTrend:
    """Finding appearing is worse, resolving is better."""
    was_present = presence_state(old)
    is_present = presence_state(new)
    if is_present is True and was_present is not True:
        return DeltaTrend.WORSENING
    if was_present is True and is_present is False:
        return DeltaTrend.IMPROVING
    return DeltaTrend.STABLE
