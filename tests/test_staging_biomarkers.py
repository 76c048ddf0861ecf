"""Tests for stage trajectory and marker series analytics."""

import pytest

from backend.analytics.biomarkers import (
    TUMOR_SIZE_MARKER,
    biomarker_series,
    select_chart_marker,
    tumor_size_series,
)
from backend.analytics.staging import (
    STAGE_PENDING,
    TRAJECTORY_METASTATIC,
    TRAJECTORY_PROGRESSION,
    TRAJECTORY_RESPONSE,
    TRAJECTORY_STABLE,
    compare_stages,
    has_metastasis,
    stage_rank,
    stage_summary,
    trajectory_label,
)
from backend.models.enums import DeltaTrend
from backend.models.patient import BiomarkerPoint


class TestStageRank:
    """Tests for stage parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("Stage IIIA", 3),
        ("Stage IVB", 4),
        ("stage IIB", 2),
        ("Stage 2", 2),
        ("IIIA", 3),
        ("pT2N1M0", None),
        ("Stage is unknown", None),
        ("Staging incomplete", None),
        ("Stage 0", 0),
        (None, None),
    ])
    def test_rank(self, text, expected):
        """Test Roman, Arabic and bare stage notations."""
        assert stage_rank(text) == expected

    def test_metastasis_detection(self):
        """Test M1, Stage IV and explicit metastatic wording."""
        assert has_metastasis("pT2N1M1a")
        assert has_metastasis("Stage IVA")
        assert has_metastasis("Metastatic disease")
        assert not has_metastasis("Stage IIIA")
        assert not has_metastasis(None)


class TestTrajectory:
    """Tests for trajectory_label and stage_summary."""

    @pytest.mark.parametrize("initial,current,expected", [
        ("Stage IIIA", "Stage IVB", TRAJECTORY_PROGRESSION),
        ("Stage III", "Stage II", TRAJECTORY_RESPONSE),
        ("pT2N0M0", "pT2N0M1", TRAJECTORY_METASTATIC),
        ("Stage II", "Stage IIB", TRAJECTORY_STABLE),
        (None, None, None),
        (None, "Stage II", None),
        ("Stage is unknown", "Stage III", None),
    ])
    def test_trajectory_label(self, initial, current, expected):
        """Test each trajectory outcome."""
        assert trajectory_label(initial, current) == expected

    def test_stage_summary_variants(self, make_patient):
        """Test the short stage line for each staging combination."""
        assert stage_summary(make_patient(initial_tnm_stage="Stage IIIA", current_tnm_stage="Stage IVB")) == (
            "Progression to Stage IV"
        )
        assert stage_summary(make_patient(initial_tnm_stage="Stage III", current_tnm_stage="Stage I")) == (
            "Downstaged to Stage I"
        )
        assert stage_summary(make_patient(initial_tnm_stage="Stage II", current_tnm_stage="Stage II")) == (
            "Stage II stable"
        )
        assert stage_summary(make_patient(initial_tnm_stage="Stage IIIA")) == "Stage III at diagnosis"
        assert stage_summary(make_patient()) == STAGE_PENDING

    def test_compare_stages(self, rich_patient):
        """Test that stage and metastasis shifts go through the comparator."""
        trajectory = compare_stages(rich_patient)
        assert trajectory.trajectory == TRAJECTORY_PROGRESSION
        assert trajectory.initial_rank == 3
        assert trajectory.current_rank == 4
        assert [(d.marker, d.trend) for d in trajectory.comparison.deltas] == [
            ("Stage", DeltaTrend.WORSENING),
            ("Metastasis", DeltaTrend.WORSENING),
        ]
        assert trajectory.comparison.narrative.startswith("Between initial staging and current staging")

    def test_compare_stages_single_snapshot(self, make_patient):
        """Test a patient staged only once."""
        trajectory = compare_stages(make_patient(initial_tnm_stage="Stage II"))
        assert trajectory.comparison.deltas == []
        assert trajectory.comparison.narrative == "Stage documented only at initial staging: Stage II."


class TestMarkerSeries:
    """Tests for biomarker and tumor-size series."""

    def test_rising_marker_is_worsening(self, rich_patient):
        """Test that a 25% CEA rise is worsening with peak and trough."""
        series = biomarker_series(rich_patient)[0]
        assert series.marker == "CEA"
        assert series.latest == 125.0
        assert series.previous == 100.0
        assert series.peak == 125.0
        assert series.trough == 100.0
        assert series.trend == DeltaTrend.WORSENING
        assert series.chartable
        assert series.narrative.startswith("Between Jan 10, 2023 and Jun 20, 2023, CEA changed from 100 to 125.")

    def test_small_change_is_stable(self, make_patient):
        """Test that a 10% move has a stable delta."""
        patient = make_patient(biomarker_trend=[
            BiomarkerPoint(date="2023-01-01", marker_name="CA19-9", value=100),
            BiomarkerPoint(date="2023-03-01", marker_name="CA19-9", value=110),
        ])
        assert biomarker_series(patient)[0].trend == DeltaTrend.STABLE

    def test_single_reading(self, make_patient):
        """Test a single reading is not chartable and has no trend."""
        patient = make_patient(biomarker_trend=[
            BiomarkerPoint(date="2023-01-10", marker_name="CEA", value=4.1, unit="ng/mL"),
            BiomarkerPoint(date="2023-02-10", marker_name="CEA", value=None),
        ])
        series = biomarker_series(patient)[0]
        assert series.point_count == 1
        assert not series.chartable
        assert series.trend is None
        assert series.narrative == "Single CEA reading of 4.1 ng/mL (Jan 10, 2023)."

    def test_tumor_size_series(self, rich_patient, make_patient):
        """Test tumor-size series from the RECIST trend."""
        series = tumor_size_series(rich_patient)
        assert series.marker == TUMOR_SIZE_MARKER
        assert series.trend == DeltaTrend.WORSENING
        assert series.unit == "mm"

        empty = tumor_size_series(make_patient())
        assert empty.point_count == 0
        assert empty.narrative == f"No numeric {TUMOR_SIZE_MARKER} readings documented."

    def test_chart_marker_prefers_most_points(self, make_patient):
        """Test that the marker with the most readings is charted."""
        patient = make_patient(biomarker_trend=[
            BiomarkerPoint(date="2023-01-01", marker_name="CEA", value=3),
            BiomarkerPoint(date="2023-01-01", marker_name="CA-125", value=30),
            BiomarkerPoint(date="2023-02-01", marker_name="CA-125", value=35),
        ])
        assert select_chart_marker(biomarker_series(patient)) == "CA-125"
        assert select_chart_marker([]) is None
