"""Patient record assembler: one raw CSV row -> one canonical Patient."""
from typing import Any, Callable, Dict, List

from backend.models.patient import Patient
from backend.patient_data.collection_parser import (
    map_biomarker_points,
    map_document_links,
    map_radiology_documents,
    map_timeline_events,
    map_tumor_size_points,
    parse_pathology_details,
)
from backend.patient_data.column_map import (
    JSON_COLUMNS,
    PATIENT_ID_HEADERS,
    SCALAR_COLUMNS,
    resolve_cell,
)
from backend.patient_data.exceptions import MissingPatientIdError
from backend.patient_data.normalizer import clean_string, normalize_field

COLLECTION_PARSERS: Dict[str, Callable[[Any], List[Any]]] = {
    "treatment_timeline": map_timeline_events,
    "tumor_size_trend": map_tumor_size_points,
    "biomarker_trend": map_biomarker_points,
    "pathology_details": parse_pathology_details,
    "pathology_reports": map_document_links,
    "genomic_reports": map_document_links,
    "radiology_reports": map_radiology_documents,
    "provider_notes": map_document_links,
}


def assemble(row: Dict[str, str]) -> Patient:
    """
    Build a Patient from one raw CSV row.

    No I/O; malformed JSON cells are logged at debug level and skipped.
    Every Patient field is assigned; cells that are absent or unparseable
    become None (scalars) or [] (sequences).

    Args:
        row: Header -> cell text mapping for a single row

    Returns:
        Canonical Patient record

    Raises:
        MissingPatientIdError: If the row has no usable identifier
    """
    patient_id = clean_string(resolve_cell(row, PATIENT_ID_HEADERS))
    if not patient_id:
        raise MissingPatientIdError("Row has no Patient ID")

    fields: Dict[str, Any] = {"patient_id": patient_id}

    for field_name, spec in SCALAR_COLUMNS.items():
        raw = resolve_cell(row, spec.headers)
        if spec.placeholders:
            raw = clean_string(raw, spec.placeholders)
        fields[field_name] = normalize_field(raw, spec.kind)

    for field_name, headers in JSON_COLUMNS.items():
        fields[field_name] = COLLECTION_PARSERS[field_name](resolve_cell(row, headers))

    return Patient(**fields)
