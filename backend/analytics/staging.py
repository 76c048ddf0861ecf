"""TNM stage ranking and initial-to-current stage trajectory."""
import re
from typing import List, Optional

from pydantic import BaseModel

from backend.analytics.comparator import FieldSpec, compare_latest
from backend.models.comparison import ComparisonResult
from backend.models.enums import TrendKind
from backend.models.patient import Patient

TRAJECTORY_PROGRESSION = "Disease Progression"
TRAJECTORY_RESPONSE = "Partial Response"
TRAJECTORY_METASTATIC = "Metastatic Recurrence"
TRAJECTORY_STABLE = "Stable Disease"

STAGE_PENDING = "Stage pending"

_STAGE_PATTERN = re.compile(r"stage\s*([0-4]|iv|iii|ii|i)(?:[a-c]\d?)?\b", re.IGNORECASE)
_ROMAN_PATTERN = re.compile(r"\b(IV|III|II|I)(?:[ABC]\d?)?\b")
_METASTASIS_PATTERN = re.compile(r"M1|Stage\s*IV|metastatic", re.IGNORECASE)

_STAGE_VALUES = {"0": 0, "I": 1, "II": 2, "III": 3, "IV": 4}
_ROMAN_LABELS = {0: "0", 1: "I", 2: "II", 3: "III", 4: "IV"}


class StageSnapshot(BaseModel):
    """One point of the stage trajectory."""
    label: str
    stage: str


class StageTrajectory(BaseModel):
    """Initial vs current staging with the derived trajectory label."""
    initial_stage: Optional[str] = None
    current_stage: Optional[str] = None
    initial_rank: Optional[int] = None
    current_rank: Optional[int] = None
    trajectory: Optional[str] = None
    stage_summary: str
    comparison: ComparisonResult


def stage_rank(text: Optional[str]) -> Optional[int]:
    """Ordinal 0-4 from "Stage IIIA", "stage 2" or a bare Roman numeral."""
    if not text:
        return None
    match = _STAGE_PATTERN.search(text)
    if match:
        token = match.group(1).upper()
        if token in _STAGE_VALUES:
            return _STAGE_VALUES[token]
        if token.isdigit():
            return int(token)
    roman = _ROMAN_PATTERN.search(text)
    if roman:
        return _STAGE_VALUES[roman.group(1)]
    return None


def has_metastasis(text: Optional[str]) -> bool:
    """M1, Stage IV or an explicit "metastatic" mention."""
    if not text:
        return False
    return bool(_METASTASIS_PATTERN.search(text))


def trajectory_label(initial: Optional[str], current: Optional[str]) -> Optional[str]:
    """Classify the stage evolution; None when it cannot be judged."""
    initial_rank = stage_rank(initial)
    current_rank = stage_rank(current)
    if initial_rank is not None and current_rank is not None:
        if current_rank > initial_rank:
            return TRAJECTORY_PROGRESSION
        if current_rank < initial_rank:
            return TRAJECTORY_RESPONSE

    if not has_metastasis(initial) and has_metastasis(current):
        return TRAJECTORY_METASTATIC

    if initial_rank is not None and initial_rank == current_rank:
        return TRAJECTORY_STABLE
    return None


def _stage_label(text: str) -> str:
    rank = stage_rank(text)
    if rank is not None:
        return f"Stage {_ROMAN_LABELS[rank]}"
    return " ".join(text.split()[:3])


def stage_summary(patient: Patient) -> str:
    """Short stage line, at most five words ("Progression to Stage IV")."""
    initial = patient.initial_tnm_stage
    current = patient.current_tnm_stage
    if current:
        initial_rank = stage_rank(initial)
        current_rank = stage_rank(current)
        label = _stage_label(current)
        if initial_rank is not None and current_rank is not None:
            if current_rank > initial_rank:
                return f"Progression to {label}"
            if current_rank < initial_rank:
                return f"Downstaged to {label}"
            return f"{label} stable"
        return f"{label} status"
    if initial:
        return f"{_stage_label(initial)} at diagnosis"
    return STAGE_PENDING


def _metastasis_state(snapshot: StageSnapshot) -> str:
    return "present" if has_metastasis(snapshot.stage) else "absent"


STAGE_FIELDS: List[FieldSpec[StageSnapshot]] = [
    FieldSpec(
        label="Stage",
        extract=lambda snapshot: snapshot.stage,
        kind=TrendKind.ORDINAL,
        rank=stage_rank,
    ),
    FieldSpec(label="Metastasis", extract=_metastasis_state, kind=TrendKind.PRESENCE),
]


def stage_snapshots(patient: Patient) -> List[StageSnapshot]:
    """Current then initial stage; absent stages are omitted."""
    snapshots = []
    if patient.current_tnm_stage:
        snapshots.append(StageSnapshot(label="current staging", stage=patient.current_tnm_stage))
    if patient.initial_tnm_stage:
        snapshots.append(StageSnapshot(label="initial staging", stage=patient.initial_tnm_stage))
    return snapshots


def compare_stages(patient: Patient) -> StageTrajectory:
    """Run the stage snapshots through the generic comparator."""
    comparison = compare_latest(
        stage_snapshots(patient),
        STAGE_FIELDS,
        summarize_single=lambda snapshot: f"Stage documented only at {snapshot.label}: {snapshot.stage}.",
        empty_narrative="No TNM staging documented.",
        label_of=lambda snapshot: snapshot.label,
    )
    return StageTrajectory(
        initial_stage=patient.initial_tnm_stage,
        current_stage=patient.current_tnm_stage,
        initial_rank=stage_rank(patient.initial_tnm_stage),
        current_rank=stage_rank(patient.current_tnm_stage),
        trajectory=trajectory_label(patient.initial_tnm_stage, patient.current_tnm_stage),
        stage_summary=stage_summary(patient),
        comparison=comparison,
    )
