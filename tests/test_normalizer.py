"""Tests for the scalar and flag normalizer."""

import pytest

from backend.models.enums import FieldKind
from backend.patient_data.normalizer import (
    MEASUREMENT_PLACEHOLDERS,
    clamp_percent,
    clean_string,
    normalize_field,
    to_boolean,
    to_number,
    to_percent,
)


class TestCleanString:
    """Tests for clean_string."""

    def test_trims_whitespace(self):
        """Test that surrounding whitespace is removed."""
        assert clean_string("  Adenocarcinoma \n") == "Adenocarcinoma"

    def test_blank_becomes_none(self):
        """Test that empty and whitespace-only cells are None."""
        assert clean_string("") is None
        assert clean_string("   ") is None
        assert clean_string(None) is None

    def test_placeholder_is_case_insensitive(self):
        """Test that listed placeholders map to None regardless of case."""
        assert clean_string("N/A", MEASUREMENT_PLACEHOLDERS) is None
        assert clean_string("na", MEASUREMENT_PLACEHOLDERS) is None
        assert clean_string("27.4", MEASUREMENT_PLACEHOLDERS) == "27.4"

    def test_placeholder_only_applies_when_listed(self):
        """Test that "N/A" is kept as text when no placeholders are given."""
        assert clean_string("N/A") == "N/A"


class TestToNumber:
    """Tests for to_number."""

    @pytest.mark.parametrize("raw,expected", [
        ("12.5 mm", 12.5),
        ("-3", -3.0),
        ("1,200", 1200.0),
        (".5", 0.5),
        (7, 7.0),
        ("PD-L1 TPS 60%", 60.0),
        ("pT2, 3.0 cm", 3.0),
        ("Ki-67 30%", 30.0),
    ])
    def test_parses_first_number(self, raw, expected):
        """Test that the first standalone decimal token is extracted."""
        assert to_number(raw) == expected

    def test_non_numeric_is_none(self):
        """Test that text without digits yields None."""
        assert to_number("pending") is None
        assert to_number("KRAS G12C") is None
        assert to_number(None) is None
        assert to_number(True) is None

    def test_non_finite_is_none(self):
        """Test that inf and nan never leak out."""
        assert to_number(float("inf")) is None
        assert to_number(float("nan")) is None


class TestToBoolean:
    """Tests for to_boolean."""

    @pytest.mark.parametrize("raw", ["Yes", "y", "TRUE", "Yes - CKD stage 3"])
    def test_true_tokens(self, raw):
        """Test that affirmative leading words are True."""
        assert to_boolean(raw) is True

    @pytest.mark.parametrize("raw", ["No", "n", "false", "No."])
    def test_false_tokens(self, raw):
        """Test that negative leading words are False."""
        assert to_boolean(raw) is False

    @pytest.mark.parametrize("raw", ["Unknown", "Not documented", "None", "", None, "1"])
    def test_unknown_stays_none(self, raw):
        """Test that unknown values are never coerced to False."""
        assert to_boolean(raw) is None


class TestPercent:
    """Tests for percent parsing and clamping."""

    def test_parses_and_clamps(self):
        """Test that values are clamped into [0, 100]."""
        assert to_percent("PD-L1 TPS 60%") == 60.0
        assert to_percent("140%") == 100.0
        assert clamp_percent(-5.0) == 0.0
        assert clamp_percent(None) is None


class TestNormalizeField:
    """Tests for normalize_field dispatch."""

    def test_dispatches_by_kind(self):
        """Test each kind routes to its parser."""
        assert normalize_field(" Female ", FieldKind.STRING) == "Female"
        assert normalize_field("62 years", FieldKind.NUMBER) == 62.0
        assert normalize_field("Unknown", FieldKind.BOOLEAN) is None
