"""Tests for the export clinical summary."""

import asyncio

import pytest

from backend.models.enums import InsightSource, TaskCategory
from backend.reasoning.clinical_summary import (
    ClinicalSummaryService,
    build_deterministic_summary,
    merge_summary,
)
from backend.reasoning.llm_gateway import LLMGatewayError


class TestDeterministicSummary:
    """Tests for build_deterministic_summary."""

    def test_rich_patient(self, rich_patient):
        """Test the four-part narrative, one-liner, risks and recommendations."""
        summary = build_deterministic_summary(rich_patient)

        assert summary.summary_source == InsightSource.DETERMINISTIC
        assert summary.clinical_narrative.startswith(
            "62-year-old female patient with Non-small cell lung cancer (Stage IVB), ECOG 1. "
            "Molecular driver: EGFR Exon 19 del."
        )
        assert "Current therapy: Osimertinib." in summary.clinical_narrative
        assert "Organ safety: renal safe, hepatic caution, hematologic caution." in summary.clinical_narrative
        assert summary.clinical_narrative.endswith(
            "Clinical synthesis: Disease Progression (Progression to Stage IV)."
        )
        assert summary.status_one_liner == "Progression to Stage IV on Osimertinib."

        assert "Hepatic dysfunction flagged" in summary.key_risks
        assert "Rising CEA" in summary.key_risks
        assert "Increasing tumor burden" in summary.key_risks
        assert "Pathology Grade: G2 -> G3" in summary.key_risks
        assert summary.recommendations[0] == "Discuss next-line treatment options at tumor board"
        assert "Correlate rising CEA with restaging imaging" in summary.recommendations

    def test_empty_patient(self, make_patient):
        """Test that a record with only an id still yields a complete summary."""
        summary = build_deterministic_summary(make_patient())

        assert summary.clinical_narrative == (
            "Patient. No active therapy documented. "
            "Organ safety: renal not documented, hepatic not documented, hematologic not documented. "
            "Clinical synthesis: Stage pending."
        )
        assert summary.status_one_liner == "Stage pending."
        assert summary.key_risks == []
        assert summary.recommendations == ["Continue current plan with routine surveillance"]

    def test_high_risk_comorbidity_and_recurrence(self, make_patient):
        patient = make_patient(diabetes="Yes", recurrence_status="Local recurrence")
        risks = build_deterministic_summary(patient).key_risks
        assert risks == ["Local recurrence", "Comorbidity: Diabetes"]

    def test_negated_recurrence_is_not_a_risk(self, make_patient):
        patient = make_patient(recurrence_status="No recurrence on surveillance imaging")
        assert build_deterministic_summary(patient).key_risks == []


class TestMergeSummary:
    """Tests for merge_summary."""

    def test_blanks_are_backfilled(self, rich_patient):
        """Test that the model narrative wins and missing lists come from the fallback."""
        fallback = build_deterministic_summary(rich_patient)
        merged = merge_summary(
            {"clinical_narrative": " Model narrative. ", "key_risks": ["  ", "Neutropenia"], "recommendations": "n/a"},
            fallback,
        )
        assert merged.summary_source == InsightSource.AI
        assert merged.clinical_narrative == "Model narrative."
        assert merged.status_one_liner == fallback.status_one_liner
        assert merged.key_risks == ["Neutropenia"]
        assert merged.recommendations == fallback.recommendations

    def test_missing_narrative_raises(self, rich_patient):
        with pytest.raises(ValueError):
            merge_summary({"clinical_narrative": "   "}, build_deterministic_summary(rich_patient))


class TestClinicalSummaryService:
    """Tests for ClinicalSummaryService."""

    @pytest.fixture
    def service(self, mock_gateway, prompt_loader):
        return ClinicalSummaryService(mock_gateway, prompt_loader, timeout_seconds=1.0)

    @pytest.mark.asyncio
    async def test_model_summary(self, service, mock_gateway, rich_patient):
        """Test that a model narrative is used and routed as a clinical summary task."""
        mock_gateway.generate.return_value = {
            "clinical_narrative": "Progressive metastatic NSCLC on osimertinib.",
            "key_risks": ["Hepatic progression"],
            "provider": "gemini",
        }

        summary = await service.generate(rich_patient)

        assert summary.summary_source == InsightSource.AI
        assert summary.key_risks == ["Hepatic progression"]
        kwargs = mock_gateway.generate.call_args.kwargs
        assert kwargs["task_category"] == TaskCategory.CLINICAL_SUMMARY
        assert kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_gateway_error_returns_fallback(self, service, mock_gateway, rich_patient):
        mock_gateway.generate.side_effect = LLMGatewayError("All providers failed")
        summary = await service.generate(rich_patient)
        assert summary == build_deterministic_summary(rich_patient)

    @pytest.mark.asyncio
    async def test_text_reply_returns_fallback(self, service, mock_gateway, rich_patient):
        """Test that a non-JSON reply without a narrative falls back."""
        mock_gateway.generate.return_value = {"response": "I cannot help with that."}
        summary = await service.generate(rich_patient)
        assert summary.summary_source == InsightSource.DETERMINISTIC

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback(self, mock_gateway, prompt_loader, rich_patient):
        async def hang(**kwargs):
            await asyncio.sleep(5)

        mock_gateway.generate.side_effect = hang
        service = ClinicalSummaryService(mock_gateway, prompt_loader, timeout_seconds=0.05)
        summary = await service.generate(rich_patient)
        assert summary.summary_source == InsightSource.DETERMINISTIC
