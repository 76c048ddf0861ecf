"""Patient Repository: loads the patient CSV and serves records by id."""
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

import pandas as pd

from backend.config.logging_config import get_logger
from backend.config.settings import get_settings
from backend.models.patient import Patient
from backend.patient_data.assembler import assemble
from backend.patient_data.exceptions import (
    MissingPatientIdError,
    PatientNotFoundError,
    PatientSourceError,
)

logger = get_logger(__name__)

PatientSource = Union[str, Path, TextIO]


def _read_rows(source: PatientSource) -> List[Dict[str, str]]:
    """Read every non-blank CSV row as text (no NA coercion)."""
    try:
        df = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise PatientSourceError(f"Failed to read patient source: {e}") from e

    rows = df.to_dict(orient="records")
    return [row for row in rows if any(str(value).strip() for value in row.values())]


def read_patients(source: PatientSource) -> List[Patient]:
    """
    Assemble patients from a CSV path or text stream.

    Rows without an identifier are excluded, and for duplicate identifiers the
    first row wins. Both cases are logged, never raised.

    Args:
        source: Path to the CSV file or an open text stream

    Returns:
        Patients in source order, unique by patient_id

    Raises:
        PatientSourceError: If the source cannot be read or parsed as CSV
    """
    patients: List[Patient] = []
    seen: Dict[str, int] = {}

    for row_number, row in enumerate(_read_rows(source), start=2):
        try:
            patient = assemble(row)
        except MissingPatientIdError:
            logger.warning("Skipping row without patient id", row=row_number)
            continue

        if patient.patient_id in seen:
            logger.warning(
                "Duplicate patient id, keeping first row",
                patient_id=patient.patient_id,
                row=row_number,
                first_row=seen[patient.patient_id],
            )
            continue

        seen[patient.patient_id] = row_number
        patients.append(patient)

    return patients


class PatientRepository:
    """In-memory patient index backed by the configured CSV file."""

    def __init__(self, csv_path: Optional[Path] = None):
        settings = get_settings()
        self.csv_path = csv_path or settings.resolve_path(settings.patients_csv_path)
        self._patients: Optional[Dict[str, Patient]] = None

    def _ensure_loaded(self) -> Dict[str, Patient]:
        if self._patients is None:
            self.reload()
        return self._patients

    @property
    def is_loaded(self) -> bool:
        return self._patients is not None

    def reload(self) -> int:
        """Re-read the CSV and swap in a fresh index. Returns the patient count."""
        patients = read_patients(self.csv_path)
        self._patients = {p.patient_id: p for p in patients}
        logger.info("Patients loaded", path=str(self.csv_path), count=len(patients))
        return len(patients)

    def load_patients(self) -> List[Patient]:
        """All patients in source order."""
        return list(self._ensure_loaded().values())

    def find_patient(self, patient_id: str) -> Optional[Patient]:
        """Patient by id, or None when unknown."""
        return self._ensure_loaded().get(patient_id.strip())

    def get_patient_by_id(self, patient_id: str) -> Patient:
        """
        Look up a patient by id.

        Raises:
            PatientNotFoundError: If no loaded patient has this id
        """
        patient = self.find_patient(patient_id)
        if patient is None:
            raise PatientNotFoundError(f"Patient not found: {patient_id}")
        return patient


# Global instance
_patient_repository: Optional[PatientRepository] = None


def get_patient_repository() -> PatientRepository:
    """Get or create global PatientRepository."""
    global _patient_repository
    if _patient_repository is None:
        _patient_repository = PatientRepository()
    return _patient_repository
