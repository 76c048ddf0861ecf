"""Tests for the generic comparator and trend rules."""

import pytest

from backend.analytics.comparator import (
    FieldSpec,
    build_delta,
    compare_latest,
    format_date_label,
    parse_record_date,
    sort_newest_first,
)
from backend.analytics.trend_rules import (
    classify_magnitude,
    classify_ordinal,
    classify_presence,
    grade_rank,
    presence_state,
)
from backend.models.enums import DeltaTrend, TrendKind
from backend.patient_data.exceptions import UnsortedRecordsError


def _record(date, value):
    return {"date": date, "value": value}


VALUE_SPEC = FieldSpec(label="Value", extract=lambda r: r["value"], kind=TrendKind.MAGNITUDE)


def _compare(records, **kwargs):
    return compare_latest(
        records,
        [VALUE_SPEC],
        summarize_single=lambda r: f"Single value {r['value']}.",
        empty_narrative="Nothing recorded.",
        date_of=lambda r: r["date"],
        **kwargs,
    )


class TestTrendRules:
    """Tests for trend classification rules."""

    @pytest.mark.parametrize("old,new,expected", [
        ("100", "125", DeltaTrend.WORSENING),
        ("100", "110", DeltaTrend.STABLE),
        ("100", "70", DeltaTrend.IMPROVING),
        ("100", "120", DeltaTrend.STABLE),
        ("100", "80", DeltaTrend.STABLE),
        ("0", "5", DeltaTrend.WORSENING),
        ("pending", "5", DeltaTrend.STABLE),
    ])
    def test_magnitude_threshold(self, old, new, expected):
        """Test the 20% boundary: strictly above is a trend, exactly 20% is stable."""
        assert classify_magnitude(old, new) == expected

    def test_magnitude_custom_threshold(self):
        """Test that the threshold is configurable."""
        assert classify_magnitude("100", "110", threshold_pct=5) == DeltaTrend.WORSENING

    @pytest.mark.parametrize("text,expected", [
        ("G3", 3.0),
        ("Grade 2", 2.0),
        ("grade III", 3.0),
        ("2", 2.0),
        ("Poorly differentiated", 3.0),
        ("Moderately differentiated", 2.0),
        ("Well differentiated", 1.0),
        ("unspecified", None),
    ])
    def test_grade_rank(self, text, expected):
        """Test grade parsing across notations."""
        assert grade_rank(text) == expected

    def test_ordinal(self):
        """Test that a higher grade is worsening and a lower one improving."""
        assert classify_ordinal("G2", "G3", grade_rank) == DeltaTrend.WORSENING
        assert classify_ordinal("G3", "G1", grade_rank) == DeltaTrend.IMPROVING
        assert classify_ordinal("G2", "unknown", grade_rank) == DeltaTrend.STABLE

    @pytest.mark.parametrize("text,expected", [
        ("positive", True),
        ("Present", True),
        ("negative", False),
        ("Not involved", False),
        ("Margins clear", False),
        ("0/18 nodes", None),
        ("nuclear staining", None),
    ])
    def test_presence_state(self, text, expected):
        """Test presence parsing; negative wording is checked first."""
        assert presence_state(text) is expected

    def test_presence_classification(self):
        """Test that appearing findings worsen and resolving findings improve."""
        assert classify_presence("negative", "positive") == DeltaTrend.WORSENING
        assert classify_presence("positive", "negative") == DeltaTrend.IMPROVING
        assert classify_presence("unclear", "also unclear") == DeltaTrend.STABLE


class TestDates:
    """Tests for date parsing and ordering."""

    def test_unparseable_dates_sort_last(self):
        """Test that undated and garbage dates go after dated records, in source order."""
        records = [
            _record(None, "a"),
            _record("2022-01-01", "b"),
            _record("garbage", "c"),
            _record("2023-05-01", "d"),
        ]
        ordered = sort_newest_first(records, lambda r: r["date"])
        assert [r["value"] for r in ordered] == ["d", "b", "a", "c"]

    def test_date_labels(self):
        """Test human date labels and fallbacks."""
        assert format_date_label("2023-06-01") == "Jun 1, 2023"
        assert format_date_label(None) == "Undated report"
        assert format_date_label("sometime") == "sometime"

    def test_parse_failure_is_min(self):
        """Test that parse failures never raise."""
        assert parse_record_date("not a date").year == 1


class TestBuildDelta:
    """Tests for build_delta."""

    def test_equal_values_produce_no_delta(self):
        """Test that case-insensitive equal text is not a change."""
        spec = FieldSpec(label="Histology", extract=lambda r: r["value"])
        assert build_delta(spec, _record(None, "Adenocarcinoma"), _record(None, "adenocarcinoma")) is None

    def test_numeric_equal_values_produce_no_delta(self):
        """Test that "12 mm" and "12.0" are the same magnitude."""
        assert build_delta(VALUE_SPEC, _record(None, "12 mm"), _record(None, "12.0")) is None

    def test_appearing_value_is_new(self):
        """Test that a value present only in the latest record is new."""
        delta = build_delta(VALUE_SPEC, _record(None, "5"), _record(None, None))
        assert delta.trend == DeltaTrend.NEW
        assert delta.old_value is None

    def test_disappearing_value_is_stable(self):
        """Test that a value that disappears is reported as stable."""
        delta = build_delta(VALUE_SPEC, _record(None, None), _record(None, "5"))
        assert delta.trend == DeltaTrend.STABLE
        assert delta.new_value is None


class TestCompareLatest:
    """Tests for compare_latest totality and narratives."""

    def test_empty(self):
        """Test the zero-record branch."""
        result = _compare([])
        assert result.narrative == "Nothing recorded."
        assert result.deltas == []
        assert not result.has_comparison

    def test_single(self):
        """Test the one-record branch."""
        result = _compare([_record("2023-01-01", "4")])
        assert result.narrative == "Single value 4."
        assert result.deltas == []
        assert result.record_count == 1

    def test_two_records_with_change(self):
        """Test that a change yields a delta and a dated narrative."""
        result = _compare([_record("2023-06-01", "125"), _record("2023-01-01", "100")])
        assert [d.trend for d in result.deltas] == [DeltaTrend.WORSENING]
        assert result.narrative.startswith("Between Jan 1, 2023 and Jun 1, 2023, Value changed from 100 to 125.")
        assert result.has_comparison

    def test_two_records_without_change(self):
        """Test the no-change narrative."""
        result = _compare([_record("2023-06-01", "100"), _record("2023-01-01", "100")])
        assert result.deltas == []
        assert result.narrative.startswith("No material changes detected between Jan 1, 2023 and Jun 1, 2023.")

    def test_unsorted_input_fails_fast(self):
        """Test that oldest-first input is rejected."""
        with pytest.raises(UnsortedRecordsError):
            _compare([_record("2023-01-01", "100"), _record("2023-06-01", "125")])

    def test_max_deltas_cap(self):
        """Test that deltas are capped after fixed, dynamic and trailing fields."""
        specs = [FieldSpec(label=f"F{i}", extract=lambda r, i=i: r["value"][i]) for i in range(5)]
        result = compare_latest(
            [{"value": "abcde"}, {"value": "vwxyz"}],
            specs,
            summarize_single=lambda r: "",
            empty_narrative="",
            max_deltas=3,
        )
        assert [d.marker for d in result.deltas] == ["F0", "F1", "F2"]
        assert "the previous record" in result.narrative
