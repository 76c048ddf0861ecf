"""Deterministic longitudinal analytics for patient records."""
from .analysis import PatientAnalysis
from .comparator import FieldSpec, compare_latest, parse_record_date, sort_newest_first
from .pathology import PathologyReport, compare_reports, normalize_reports, pathology_summary
from .staging import StageTrajectory, compare_stages, stage_rank, trajectory_label

__all__ = [
    "PatientAnalysis",
    "FieldSpec",
    "compare_latest",
    "parse_record_date",
    "sort_newest_first",
    "PathologyReport",
    "compare_reports",
    "normalize_reports",
    "pathology_summary",
    "StageTrajectory",
    "compare_stages",
    "stage_rank",
    "trajectory_label",
]
