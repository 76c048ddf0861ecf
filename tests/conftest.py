"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
from pathlib import Path

import pytest
from unittest.mock import AsyncMock, MagicMock

from backend.models.patient import Patient, PathologyDetail, BiomarkerPoint, TumorSizePoint
from backend.reasoning.insight_cache import InsightCache
from backend.reasoning.prompt_loader import PromptLoader

PROJECT_ROOT = Path(__file__).resolve().parents[1]


# ============================================================================
# Patients
# ============================================================================

@pytest.fixture
def make_patient():
    """Factory for Patient records with only the fields a test cares about."""
    def _create(patient_id: str = "P-001", **fields):
        return Patient(patient_id=patient_id, **fields)
    return _create


@pytest.fixture
def pathology_pair():
    """Two structured reports: grade 2 / clear margins, then grade 3 / involved margins."""
    return [
        PathologyDetail(
            procedure="Core biopsy",
            date="2023-01-01",
            site="Left upper lobe",
            diagnosis_text="Adenocarcinoma",
            histology={"grade": "G2", "margins": "negative"},
            ihc_panel={"TTF-1": "positive"},
        ),
        PathologyDetail(
            procedure="Resection",
            date="2023-06-01",
            site="Left upper lobe",
            diagnosis_text="Adenocarcinoma",
            histology={"grade": "G3", "margins": "positive"},
            ihc_panel={"TTF-1": "positive"},
        ),
    ]


@pytest.fixture
def rich_patient(make_patient, pathology_pair):
    """Patient with staging, labs, trends and two pathology reports."""
    return make_patient(
        patient_id="ONC-001",
        name="Jane Doe",
        age=62.0,
        sex="Female",
        performance_status="ECOG 1",
        primary_diagnosis="Non-small cell lung cancer",
        initial_tnm_stage="Stage IIIA",
        current_tnm_stage="Stage IVB",
        metastatic_status="Metastatic",
        metastatic_sites="Liver; Bone",
        actionable_mutation_summary="EGFR Exon 19 del",
        current_line_of_therapy="Osimertinib",
        treatment_plan_summary="Continue osimertinib with restaging CT",
        radiology_trend="New hepatic lesion",
        renal_dysfunction_flag=False,
        liver_dysfunction_flag=True,
        cbc_values="Hb 10.1 (low), WBC 5.2",
        cmp_values="Cr 0.9, AST 88, ALT 102",
        overall_disease_course_summary="Progressed to hepatic metastases.",
        tumor_size_trend=[
            TumorSizePoint(date="2023-01-10", sum_of_diameters_mm=48),
            TumorSizePoint(date="2023-06-20", sum_of_diameters_mm=61),
        ],
        biomarker_trend=[
            BiomarkerPoint(date="2023-01-10", marker_name="CEA", value=100, unit="ng/mL"),
            BiomarkerPoint(date="2023-06-20", marker_name="CEA", value=125, unit="ng/mL"),
        ],
        pathology_details=pathology_pair,
    )


@pytest.fixture
def sample_csv_path():
    """Sample patient CSV shipped with the repository."""
    return PROJECT_ROOT / "data" / "patients" / "params_onco.csv"


# ============================================================================
# Reasoning
# ============================================================================

@pytest.fixture
def prompt_loader():
    """Prompt loader over the repository's prompts directory."""
    return PromptLoader(PROJECT_ROOT / "prompts")


@pytest.fixture
def insight_cache():
    return InsightCache()


@pytest.fixture
def mock_gateway():
    """Gateway double whose generate() result each test configures."""
    gateway = MagicMock()
    gateway.generate = AsyncMock(return_value={})
    return gateway


@pytest.fixture
def valid_ai_payload():
    """Model payload that satisfies the insight schema, with optional sections omitted."""
    return {
        "sidebar": {
            "dynamic_insights": [
                {"label": "Driver", "value": "EGFR Exon 19 del", "priority": "High"},
                {"label": "Stage", "value": "IIIA to IVB", "priority": "Medium"},
            ],
            "safety_flags": {
                "renal": {"status": "Safe", "details": "Cr 0.9"},
                "liver": {"status": "Caution", "details": "AST/ALT elevated"},
                "hematology": {"status": "Caution", "details": "Hb 10.1 low"},
            },
        },
        "charts": {
            "tumor_size": {"should_render": True, "reason": "2 measurements"},
            "biomarkers": {"should_render": True, "selected_marker": "CEA", "reason": "2 readings"},
        },
        "tabs": {
            "diagnosis": {"mutation_highlight": "EGFR Exon 19 del", "summary": "Metastatic NSCLC."},
            "investigation": {"trend_analysis": "Hepatic progression."},
            "treatment": {"current_strategy": "Osimertinib."},
        },
        "stage_summary": "Progression to Stage IV",
        "provider": "gemini",
        "task_category": "insight_generation",
    }


@pytest.fixture
def payload_json(valid_ai_payload):
    return json.dumps(valid_ai_payload)
