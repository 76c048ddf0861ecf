"""Exceptions for patient data loading and longitudinal analysis."""


class PatientDataError(Exception):
    """Base error for patient source data."""
    pass


class MissingPatientIdError(PatientDataError):
    """Source row has no usable patient identifier."""
    pass


class PatientNotFoundError(PatientDataError):
    """Requested patient is not in the loaded batch."""
    pass


class PatientSourceError(PatientDataError):
    """Patient CSV source could not be read."""
    pass


class UnsortedRecordsError(ValueError):
    """Comparator received a sequence that is not ordered newest-first."""
    pass
