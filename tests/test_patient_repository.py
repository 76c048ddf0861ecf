"""Tests for the patient assembler and CSV repository."""

import io

import pytest

from backend.models.patient import Patient
from backend.patient_data.assembler import assemble
from backend.patient_data.column_map import JSON_COLUMNS, SCALAR_COLUMNS, resolve_cell
from backend.patient_data.exceptions import (
    MissingPatientIdError,
    PatientNotFoundError,
    PatientSourceError,
)
from backend.patient_data.repository import PatientRepository, read_patients


class TestResolveCell:
    """Tests for alias-table column resolution."""

    def test_first_non_empty_alias_wins(self):
        """Test that an empty canonical column falls through to the next alias."""
        row = {"bmi": "", "BMI": "27.4"}
        assert resolve_cell(row, SCALAR_COLUMNS["bmi"].headers) == "27.4"

    def test_header_with_leading_space_matches(self):
        """Test that a header exported with a stray leading space still resolves."""
        row = {" Body Surface Area (BSA)": "1.8"}
        assert resolve_cell(row, ("Body Surface Area (BSA)",)) == "1.8"


class TestAssemble:
    """Tests for assemble."""

    def test_empty_row_with_id_is_total(self):
        """Test that every field is assigned for a row holding only an id."""
        patient = assemble({"Patient ID": " P-9 "})
        assert patient.patient_id == "P-9"
        for field_name in SCALAR_COLUMNS:
            assert getattr(patient, field_name) is None
        for field_name in JSON_COLUMNS:
            assert getattr(patient, field_name) == []

    def test_missing_id_raises(self):
        """Test that a row without an identifier is rejected."""
        with pytest.raises(MissingPatientIdError):
            assemble({"Patient ID": "  ", "Name": "Nobody"})

    def test_flags_and_measurements(self):
        """Test boolean flags, numeric age and measurement placeholders."""
        patient = assemble({
            "Patient ID": "P-1",
            "Age": "62",
            "Renal dysfunction flag": "Unknown",
            "Liver dysfunction flag": "Yes",
            "New lesions (yes/no)": "no",
            "Body Mass Index (BMI)": "N/A",
            "BSA": "1.9",
        })
        assert patient.age == 62.0
        assert patient.renal_dysfunction_flag is None
        assert patient.liver_dysfunction_flag is True
        assert patient.new_lesions is False
        assert patient.bmi is None
        assert patient.bsa == "1.9"

    def test_json_columns_are_parsed(self):
        """Test that embedded arrays become typed sequences."""
        patient = assemble({
            "Patient ID": "P-2",
            "Tumor_Size_Trend_JSON": '[{"date": "2023-01-01", "sum_of_diameters_mm": 40}]',
            "Pathology_Details_JSON": '{"date": "2023-01-01", "histology": {"grade": "G1"}}',
            "Biomarker_Trend_JSON": "not json",
        })
        assert patient.tumor_size_trend[0].sum_of_diameters_mm == 40.0
        assert len(patient.pathology_details) == 1
        assert patient.biomarker_trend == []

    def test_round_trip_through_json(self):
        """Test that a Patient serializes and re-validates to an equal record."""
        patient = assemble({"Patient ID": "P-3", "Name": "Jane", "Age": "50", "Diabetes": "Yes"})
        assert Patient.model_validate(patient.model_dump(mode="json")) == patient


class TestReadPatients:
    """Tests for read_patients."""

    def test_skips_missing_ids_and_duplicates(self):
        """Test that id-less rows are skipped and the first duplicate wins."""
        csv_text = (
            "Patient ID,Name,Age\n"
            "P-1,First,40\n"
            ",Orphan,50\n"
            "P-1,Second,41\n"
            "\n"
            "P-2,Other,60\n"
        )
        patients = read_patients(io.StringIO(csv_text))
        assert [p.patient_id for p in patients] == ["P-1", "P-2"]
        assert patients[0].name == "First"

    def test_keeps_na_text(self):
        """Test that "NA" cells are not turned into NaN by the CSV reader."""
        patients = read_patients(io.StringIO("Patient ID,KRAS mutation\nP-1,NA\n"))
        assert patients[0].kras_mutation == "NA"

    def test_empty_source(self):
        """Test that an empty file yields no patients."""
        assert read_patients(io.StringIO("")) == []

    def test_missing_file_raises_source_error(self, tmp_path):
        """Test that an unreadable path raises PatientSourceError."""
        with pytest.raises(PatientSourceError):
            read_patients(tmp_path / "missing.csv")


class TestPatientRepository:
    """Tests for PatientRepository against the sample CSV."""

    def test_loads_sample_file(self, sample_csv_path):
        """Test that the shipped sample parses into its three patients."""
        repository = PatientRepository(sample_csv_path)
        ids = [p.patient_id for p in repository.load_patients()]
        assert ids == ["ONC-001", "ONC-002", "ONC-003"]

        patient = repository.get_patient_by_id("ONC-001")
        assert patient.liver_dysfunction_flag is True
        assert len(patient.pathology_details) == 2
        assert patient.biomarker_trend[1].value == 125.0
        assert patient.bmi == "27.4"

    def test_placeholder_and_unknown_flag(self, sample_csv_path):
        """Test that "N/A" BMI and "Unknown" renal flag both become None."""
        patient = PatientRepository(sample_csv_path).get_patient_by_id("ONC-002")
        assert patient.bmi is None
        assert patient.renal_dysfunction_flag is None

    def test_unknown_id_raises(self, sample_csv_path):
        """Test that lookups for unknown ids raise PatientNotFoundError."""
        repository = PatientRepository(sample_csv_path)
        with pytest.raises(PatientNotFoundError):
            repository.get_patient_by_id("NOPE")
        assert repository.find_patient("NOPE") is None

    def test_reload_picks_up_changes(self, tmp_path):
        """Test that reload re-reads the file."""
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text("Patient ID,Name\nP-1,A\n", encoding="utf-8")
        repository = PatientRepository(csv_file)
        assert len(repository.load_patients()) == 1

        csv_file.write_text("Patient ID,Name\nP-1,A\nP-2,B\n", encoding="utf-8")
        assert repository.reload() == 2
        assert repository.is_loaded
