"""Column alias table: maps each Patient scalar field to its CSV headers.

Headers are listed in priority order (canonical header first). Matching is
exact after whitespace-trim, and the first non-empty cell wins.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from backend.models.enums import FieldKind
from backend.patient_data.normalizer import MEASUREMENT_PLACEHOLDERS


@dataclass(frozen=True)
class ColumnSpec:
    """How one Patient field is read from the source row."""
    headers: Tuple[str, ...]
    kind: FieldKind = FieldKind.STRING
    placeholders: FrozenSet[str] = field(default_factory=frozenset)


def _text(*headers: str) -> ColumnSpec:
    return ColumnSpec(headers=headers)


def _flag(*headers: str) -> ColumnSpec:
    return ColumnSpec(headers=headers, kind=FieldKind.BOOLEAN)


def _measurement(*headers: str) -> ColumnSpec:
    return ColumnSpec(headers=headers, placeholders=MEASUREMENT_PLACEHOLDERS)


PATIENT_ID_HEADERS: Tuple[str, ...] = ("Patient ID", "patient_id", "PatientID", "MRN")

SCALAR_COLUMNS: Dict[str, ColumnSpec] = {
    # Demographics
    "name": _text("Name", "Patient name"),
    "date_of_birth": _text("Date of birth", "DOB"),
    "age": ColumnSpec(headers=("Age",), kind=FieldKind.NUMBER),
    "sex": _text("Sex", "Gender"),
    # Header variants seen in exports, leading-space one included
    "bmi": _measurement("bmi", "BMI", "Body Mass Index (BMI)"),
    "bsa": _measurement(
        "bsa",
        "BSA",
        "Body Surface Area (BSA)",
        " Body Surface Area (BSA)",
        "Body surface area (BSA)",
    ),
    "smoking_status": _text("Smoking status (Never / Former / Current)", "Smoking status"),
    "performance_status": _text("Performance status (ECOG or Karnofsky)", "Performance status"),

    # Comorbidities
    "diabetes": _text("Diabetes"),
    "hypertension": _text("Hypertension"),
    "heart_disease": _text("Heart disease"),
    "copd_asthma": _text("COPD / asthma"),
    "other_relevant_comorbidities": _text("Other relevant comorbidities"),

    # Diagnosis
    "primary_diagnosis": _text("Primary diagnosis"),
    "histologic_type": _text("Histologic type"),
    "tumor_grade": _text("Tumor grade"),
    "diagnosis_date": _text("Diagnosis date"),
    "initial_tnm_stage": _text("Initial TNM stage"),
    "current_tnm_stage": _text("Current TNM stage"),
    "metastatic_status": _text("Metastatic status"),
    "metastatic_sites": _text("Metastatic sites"),
    "recurrence_status": _text("Recurrence status"),
    "pathology_diagnosis_text": _text("Pathology diagnosis text"),
    "histopathologic_features": _text("Histopathologic features"),
    "margin_status": _text("Margin status"),
    "ihc_markers": _text("IHC markers"),
    "ambiguous_diagnosis_flag": _flag("Ambiguous diagnosis flag"),

    # Molecular
    "egfr_mutation": _text("EGFR mutation"),
    "alk_rearrangement": _text("ALK rearrangement"),
    "ros1_rearrangement": _text("ROS1 rearrangement"),
    "kras_mutation": _text("KRAS mutation"),
    "braf_mutation": _text("BRAF mutation"),
    "met_exon14_skipping": _text("MET exon 14 skipping"),
    "ret_rearrangement": _text("RET rearrangement"),
    "her2_mutation": _text("HER2 mutation"),
    "ntrk_fusion": _text("NTRK fusion"),
    "pd_l1_expression": _text("PD-L1 expression (%)", "PD-L1 expression"),
    "tumor_mutational_burden": _text("Tumor mutational burden (TMB)"),
    "microsatellite_instability": _text("Microsatellite instability (MSI)"),
    "ctdna_findings": _text("ctDNA findings"),
    "actionable_mutation_summary": _text("Actionable mutation summary"),
    "new_mutations_over_time": _text("New mutations over time"),

    # Treatment
    "treatment_plan_summary": _text("Treatment plan summary"),
    "surgical_treatments": _text("Surgical treatments (type + date)"),
    "radiation_treatments": _text("Radiation treatments (site + date)"),
    "current_line_of_therapy": _text("Current line of therapy"),
    "prior_therapies": _text("Prior therapies"),
    "regimen_details": _text("Regimen details (drug(s), dose, frequency)"),
    "treatment_start_and_end_dates": _text("Treatment start and end dates"),
    "response_per_line": _text("Response per line (CR / PR / SD / PD)"),
    "treatment_response_timeline": _text("Treatment response timeline"),
    "reasons_for_treatment_change": _text("Reasons for treatment change"),
    "treatment_related_toxicities": _text("Treatment-related toxicities"),

    # Imaging
    "latest_ct_chest": _text("Latest CT chest (date + summary)"),
    "latest_pet_ct": _text("Latest PET/CT (date + summary)"),
    "latest_brain_mri": _text("Latest Brain MRI"),
    "new_lesions": _flag("New lesions (yes/no)", "New lesions"),
    "radiology_impression_keywords": _text("Radiology impression keywords"),
    "radiology_trend": _text("Radiology trend"),
    "radiology_trends_over_time": _text("Radiology trends over time"),
    "recist_measurements": _text("RECIST measurements"),
    "lesion_count_size": _text("Lesion count / size"),

    # Labs
    "renal_dysfunction_flag": _flag("Renal dysfunction flag"),
    "liver_dysfunction_flag": _flag("Liver dysfunction flag"),
    "cbc_values": _text("CBC values"),
    "cmp_values": _text("CMP values"),
    "electrolytes": _text("Electrolytes"),
    "abnormal_lab_flags": _text("Abnormal lab flags"),
    "longitudinal_laboratory_flag_trends": _text("Longitudinal laboratory flag trends"),

    # Tumor markers
    "cea": _text("CEA"),
    "ca199": _text("CA19-9", "CA 19-9"),
    "other_tumor_markers": _text("Other tumor markers"),
    "longitudinal_biomarker_trends": _text("Longitudinal biomarker trends"),
    "biomarker_trends_over_time": _text("Biomarker trends over time"),

    # Disease course
    "overall_disease_course_summary": _text("Overall disease course summary"),
    "stage_changes_over_time": _text("Stage changes over time"),
    "last_clinical_encounter_date": _text("Last clinical encounter date"),

    # Document link text columns
    "pathology_report_links": _text("Pathology report links"),
    "genomic_report_links": _text("Genomic report links"),
    "radiology_report_links": _text("Radiology report links"),
    "provider_note_links": _text("Provider note links"),
}

# Embedded JSON columns, keyed by Patient sequence field
JSON_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "treatment_timeline": ("Treatment_Timeline_JSON",),
    "tumor_size_trend": ("Tumor_Size_Trend_JSON",),
    "biomarker_trend": ("Biomarker_Trend_JSON",),
    "pathology_details": ("pathology_details_json", "Pathology_Details_JSON"),
    "pathology_reports": ("Pathology_Reports_JSON",),
    "genomic_reports": ("Genomic_Reports_JSON",),
    "radiology_reports": ("Radiology_Reports_JSON",),
    "provider_notes": ("Provider_Notes_JSON",),
}


def resolve_cell(row: Dict[str, str], headers: Tuple[str, ...]) -> Optional[str]:
    """
    Return the first non-empty cell among ``headers``.

    Row keys are compared after whitespace-trim, so a header exported with a
    stray leading space still matches its canonical spelling.

    Args:
        row: Raw CSV row (header -> cell text)
        headers: Candidate headers in priority order

    Returns:
        Raw cell text, or None when no candidate has content
    """
    trimmed = {}
    for key, value in row.items():
        if key is None:
            continue
        trimmed.setdefault(key.strip(), value)

    for header in headers:
        value = row.get(header)
        if not _has_content(value):
            value = trimmed.get(header.strip())
        if _has_content(value):
            return value
    return None


def _has_content(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())
