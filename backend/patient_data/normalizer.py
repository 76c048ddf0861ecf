"""Scalar and flag normalizer: turns raw CSV/JSON cells into typed scalars.

Every function here is total: bad input yields ``None``, never an exception.
``None`` means "not documented" and must never be read as a negative finding.
"""

import math
import re
from typing import Any, Iterable, Optional, Union

from backend.models.enums import FieldKind

# Digits glued to a letter, dot or hyphen belong to an identifier (PD-L1, pT2)
_NUMBER_PATTERN = re.compile(r"(?<![A-Za-z0-9.\-])[-+]?\d*\.?\d+")
_LEADING_WORD = re.compile(r"[a-z]+")

TRUE_TOKENS = frozenset({"yes", "y", "true"})
FALSE_TOKENS = frozenset({"no", "n", "false"})

# Placeholders used in measurement columns (BMI, BSA) for "not measured"
MEASUREMENT_PLACEHOLDERS = frozenset({"n/a", "na"})

Scalar = Union[str, float, bool]


def clean_string(raw: Any, placeholders: Iterable[str] = ()) -> Optional[str]:
    """Trim a cell; empty (or a listed placeholder, case-insensitive) becomes None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None
        return str(raw)
    if not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None
    if trimmed.lower() in {p.lower() for p in placeholders}:
        return None
    return trimmed


def to_number(raw: Any) -> Optional[float]:
    """Parse the first decimal token of a cell ("12.5 mm" -> 12.5)."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None
    if not isinstance(raw, str):
        return None
    match = _NUMBER_PATTERN.search(raw.replace(",", ""))
    if not match:
        return None
    try:
        value = float(match.group(0))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def to_boolean(raw: Any) -> Optional[bool]:
    """
    Map a flag cell to True/False/None.

    The leading word decides, so "Yes - CKD stage 3" is True and "No." is False,
    while "Unknown", "Not documented" and "None" stay None.
    """
    if isinstance(raw, bool):
        return raw
    if not isinstance(raw, str):
        return None
    match = _LEADING_WORD.match(raw.strip().lower())
    if not match:
        return None
    word = match.group(0)
    if word in TRUE_TOKENS:
        return True
    if word in FALSE_TOKENS:
        return False
    return None


def clamp_percent(value: Optional[float]) -> Optional[float]:
    """Clamp a percentage into [0, 100]."""
    if value is None:
        return None
    return max(0.0, min(100.0, value))


def to_percent(raw: Any) -> Optional[float]:
    """Parse a percentage cell ("PD-L1 TPS 60%") and clamp it."""
    return clamp_percent(to_number(raw))


def normalize_field(raw: Any, kind: FieldKind) -> Optional[Scalar]:
    """Normalize one raw cell according to its declared kind."""
    if kind == FieldKind.STRING:
        return clean_string(raw)
    if kind == FieldKind.NUMBER:
        return to_number(raw)
    if kind == FieldKind.BOOLEAN:
        return to_boolean(raw)
    raise ValueError(f"Unknown field kind: {kind}")
