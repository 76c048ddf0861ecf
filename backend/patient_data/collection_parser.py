"""Embedded-collection parser for the ``_JSON`` columns of the patient CSV.

Cells hold stringified JSON arrays. Parsing is total: malformed JSON or a
non-array payload yields an empty list, and malformed elements degrade
field-by-field instead of failing the row.
"""
import json
from typing import Any, Dict, List, Optional

from backend.config.logging_config import get_logger
from backend.models.patient import (
    BiomarkerPoint,
    DocumentLink,
    PathologyDetail,
    RadiologyDocument,
    TreatmentEvent,
    TumorSizePoint,
)
from backend.patient_data.normalizer import to_number

logger = get_logger(__name__)


def _loads(raw: Optional[str]) -> Any:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError) as e:
        logger.debug("Malformed embedded JSON", error=str(e), length=len(raw))
        return None


def parse_json_array(raw: Optional[str]) -> List[Any]:
    """Parse a JSON array cell; anything that is not an array becomes []."""
    parsed = _loads(raw)
    return parsed if isinstance(parsed, list) else []


def _objects(items: List[Any]) -> List[Dict[str, Any]]:
    return [item for item in items if isinstance(item, dict)]


def _text(item: Dict[str, Any], *keys: str) -> Optional[str]:
    """First string value among ``keys``; foreign types are dropped."""
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return None


def _number(item: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        if item.get(key) is not None:
            return to_number(item[key])
    return None


def _mapping(item: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    for key in keys:
        value = item.get(key)
        if isinstance(value, dict):
            return value
    return {}


def map_timeline_events(raw: Optional[str]) -> List[TreatmentEvent]:
    """Treatment_Timeline_JSON -> TreatmentEvent list (source order)."""
    return [
        TreatmentEvent(
            line=_number(item, "line", "lineNumber"),
            regimen=_text(item, "regimen"),
            start_date=_text(item, "start_date", "startDate"),
            end_date=_text(item, "end_date", "endDate"),
            response=_text(item, "response"),
            reason_for_stopping=_text(item, "reason_for_stopping", "reasonForStopping"),
            toxicities=_text(item, "toxicities"),
        )
        for item in _objects(parse_json_array(raw))
    ]


def map_tumor_size_points(raw: Optional[str]) -> List[TumorSizePoint]:
    """Tumor_Size_Trend_JSON -> TumorSizePoint list."""
    return [
        TumorSizePoint(
            date=_text(item, "date"),
            sum_of_diameters_mm=_number(item, "sum_of_diameters_mm", "sumOfDiametersMm"),
        )
        for item in _objects(parse_json_array(raw))
    ]


def map_biomarker_points(raw: Optional[str]) -> List[BiomarkerPoint]:
    """Biomarker_Trend_JSON -> BiomarkerPoint list."""
    return [
        BiomarkerPoint(
            date=_text(item, "date"),
            marker_name=_text(item, "marker_name", "markerName", "marker"),
            value=_number(item, "value"),
            unit=_text(item, "unit"),
        )
        for item in _objects(parse_json_array(raw))
    ]


def map_document_links(raw: Optional[str]) -> List[DocumentLink]:
    """Report/note link arrays -> DocumentLink list."""
    return [
        DocumentLink(
            date=_text(item, "date"),
            summary=_text(item, "summary"),
            link=_text(item, "link", "url"),
        )
        for item in _objects(parse_json_array(raw))
    ]


def map_radiology_documents(raw: Optional[str]) -> List[RadiologyDocument]:
    """Radiology_Reports_JSON -> RadiologyDocument list."""
    return [
        RadiologyDocument(
            date=_text(item, "date"),
            modality=_text(item, "modality"),
            summary=_text(item, "summary"),
            link=_text(item, "link", "url"),
        )
        for item in _objects(parse_json_array(raw))
    ]


def parse_pathology_details(raw: Optional[str]) -> List[PathologyDetail]:
    """
    Parse the structured pathology column.

    Unlike the other collections this column may hold a single JSON object,
    which is treated as a one-element list.

    Args:
        raw: Cell text of ``pathology_details_json``

    Returns:
        PathologyDetail list in source order
    """
    parsed = _loads(raw)
    if isinstance(parsed, dict):
        entries = [parsed]
    elif isinstance(parsed, list):
        entries = parsed
    else:
        return []

    return [
        PathologyDetail(
            procedure=_text(entry, "procedure"),
            date=_text(entry, "date"),
            site=_text(entry, "site"),
            diagnosis_text=_text(entry, "diagnosis_text", "diagnosisText"),
            histology=_mapping(entry, "histology"),
            ihc_panel=_mapping(entry, "ihc_panel", "ihcPanel"),
        )
        for entry in _objects(entries)
    ]
