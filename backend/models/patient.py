"""Canonical patient record assembled from one CSV row."""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

NOT_DOCUMENTED = "Not documented"


class TreatmentEvent(BaseModel):
    """One line of therapy from the treatment timeline."""
    line: Optional[float] = None
    regimen: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    response: Optional[str] = None
    reason_for_stopping: Optional[str] = None
    toxicities: Optional[str] = None


class TumorSizePoint(BaseModel):
    """Sum-of-diameters measurement at one scan date."""
    date: Optional[str] = None
    sum_of_diameters_mm: Optional[float] = None


class BiomarkerPoint(BaseModel):
    """One serum/tissue marker reading."""
    date: Optional[str] = None
    marker_name: Optional[str] = None
    value: Optional[float] = None
    unit: Optional[str] = None


class PathologyDetail(BaseModel):
    """Structured pathology report (histology sub-object + IHC marker map)."""
    procedure: Optional[str] = None
    date: Optional[str] = None
    site: Optional[str] = None
    diagnosis_text: Optional[str] = None
    histology: Dict[str, object] = Field(default_factory=dict)
    ihc_panel: Dict[str, object] = Field(default_factory=dict)


class DocumentLink(BaseModel):
    """Reference to an external clinical document."""
    date: Optional[str] = None
    summary: Optional[str] = None
    link: Optional[str] = None


class RadiologyDocument(DocumentLink):
    """Radiology report reference."""
    modality: Optional[str] = None


class Patient(BaseModel):
    """
    Root aggregate: one instance per unique patient identifier.

    Every field is always present. Missing source data is ``None`` for scalars
    and ``[]`` for longitudinal sequences; ``None`` means "not documented" and is
    never a negative finding.
    """

    model_config = ConfigDict(frozen=True)

    patient_id: str

    # Demographics
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    age: Optional[float] = None
    sex: Optional[str] = None
    bmi: Optional[str] = None
    bsa: Optional[str] = None
    smoking_status: Optional[str] = None
    performance_status: Optional[str] = None

    # Comorbidities
    diabetes: Optional[str] = None
    hypertension: Optional[str] = None
    heart_disease: Optional[str] = None
    copd_asthma: Optional[str] = None
    other_relevant_comorbidities: Optional[str] = None

    # Diagnosis
    primary_diagnosis: Optional[str] = None
    histologic_type: Optional[str] = None
    tumor_grade: Optional[str] = None
    diagnosis_date: Optional[str] = None
    initial_tnm_stage: Optional[str] = None
    current_tnm_stage: Optional[str] = None
    metastatic_status: Optional[str] = None
    metastatic_sites: Optional[str] = None
    recurrence_status: Optional[str] = None
    pathology_diagnosis_text: Optional[str] = None
    histopathologic_features: Optional[str] = None
    margin_status: Optional[str] = None
    ihc_markers: Optional[str] = None
    ambiguous_diagnosis_flag: Optional[bool] = None

    # Molecular
    egfr_mutation: Optional[str] = None
    alk_rearrangement: Optional[str] = None
    ros1_rearrangement: Optional[str] = None
    kras_mutation: Optional[str] = None
    braf_mutation: Optional[str] = None
    met_exon14_skipping: Optional[str] = None
    ret_rearrangement: Optional[str] = None
    her2_mutation: Optional[str] = None
    ntrk_fusion: Optional[str] = None
    pd_l1_expression: Optional[str] = None
    tumor_mutational_burden: Optional[str] = None
    microsatellite_instability: Optional[str] = None
    ctdna_findings: Optional[str] = None
    actionable_mutation_summary: Optional[str] = None
    new_mutations_over_time: Optional[str] = None

    # Treatment
    treatment_plan_summary: Optional[str] = None
    surgical_treatments: Optional[str] = None
    radiation_treatments: Optional[str] = None
    current_line_of_therapy: Optional[str] = None
    prior_therapies: Optional[str] = None
    regimen_details: Optional[str] = None
    treatment_start_and_end_dates: Optional[str] = None
    response_per_line: Optional[str] = None
    treatment_response_timeline: Optional[str] = None
    reasons_for_treatment_change: Optional[str] = None
    treatment_related_toxicities: Optional[str] = None

    # Imaging
    latest_ct_chest: Optional[str] = None
    latest_pet_ct: Optional[str] = None
    latest_brain_mri: Optional[str] = None
    new_lesions: Optional[bool] = None
    radiology_impression_keywords: Optional[str] = None
    radiology_trend: Optional[str] = None
    radiology_trends_over_time: Optional[str] = None
    recist_measurements: Optional[str] = None
    lesion_count_size: Optional[str] = None

    # Labs
    renal_dysfunction_flag: Optional[bool] = None
    liver_dysfunction_flag: Optional[bool] = None
    cbc_values: Optional[str] = None
    cmp_values: Optional[str] = None
    electrolytes: Optional[str] = None
    abnormal_lab_flags: Optional[str] = None
    longitudinal_laboratory_flag_trends: Optional[str] = None

    # Tumor markers
    cea: Optional[str] = None
    ca199: Optional[str] = None
    other_tumor_markers: Optional[str] = None
    longitudinal_biomarker_trends: Optional[str] = None
    biomarker_trends_over_time: Optional[str] = None

    # Disease course
    overall_disease_course_summary: Optional[str] = None
    stage_changes_over_time: Optional[str] = None
    last_clinical_encounter_date: Optional[str] = None

    # Document link columns (free text)
    pathology_report_links: Optional[str] = None
    genomic_report_links: Optional[str] = None
    radiology_report_links: Optional[str] = None
    provider_note_links: Optional[str] = None

    # Longitudinal sequences (source order)
    treatment_timeline: List[TreatmentEvent] = Field(default_factory=list)
    tumor_size_trend: List[TumorSizePoint] = Field(default_factory=list)
    biomarker_trend: List[BiomarkerPoint] = Field(default_factory=list)
    pathology_details: List[PathologyDetail] = Field(default_factory=list)
    pathology_reports: List[DocumentLink] = Field(default_factory=list)
    genomic_reports: List[DocumentLink] = Field(default_factory=list)
    radiology_reports: List[RadiologyDocument] = Field(default_factory=list)
    provider_notes: List[DocumentLink] = Field(default_factory=list)
