"""Patient data ingestion: CSV normalization, assembly and repository."""
from .assembler import assemble
from .exceptions import (
    PatientDataError,
    MissingPatientIdError,
    PatientNotFoundError,
    PatientSourceError,
    UnsortedRecordsError,
)
from .normalizer import normalize_field, to_number, to_boolean, clean_string, clamp_percent
from .repository import PatientRepository, get_patient_repository, read_patients

__all__ = [
    "assemble",
    "PatientDataError",
    "MissingPatientIdError",
    "PatientNotFoundError",
    "PatientSourceError",
    "UnsortedRecordsError",
    "normalize_field",
    "to_number",
    "to_boolean",
    "clean_string",
    "clamp_percent",
    "PatientRepository",
    "get_patient_repository",
    "read_patients",
]
