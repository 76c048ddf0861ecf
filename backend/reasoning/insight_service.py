"""Insight reconciliation: model output validated, backfilled, or replaced by the fallback."""
import asyncio
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from backend.analytics.analysis import PatientAnalysis
from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.models.comparison import Delta
from backend.models.enums import DeltaTrend, InsightSource, TaskCategory
from backend.models.insights import Investigations, MasterAIResponse
from backend.models.patient import Patient
from backend.reasoning.fallback_insights import build_fallback_insights, labs_summary, status_summary
from backend.reasoning.insight_cache import InsightCache, get_insight_cache
from backend.reasoning.llm_gateway import LLMGateway, LLMGatewayError, get_llm_gateway
from backend.reasoning.prompt_loader import PromptLoader, get_prompt_loader

logger = get_logger(__name__)

SYSTEM_PROMPT_PATH = "insights/system.txt"
USER_PROMPT_PATH = "insights/patient_analysis.txt"

# Gateway bookkeeping keys that are not part of the insight payload
_GATEWAY_KEYS = ("provider", "task_category", "insight_source")


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _coerce_scalar(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _prepare_payload(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Drop gateway keys and stringify numeric delta values before validation."""
    payload = {key: value for key, value in raw.items() if key not in _GATEWAY_KEYS}
    investigations = payload.get("investigations")
    if isinstance(investigations, dict) and isinstance(investigations.get("pathology_deltas"), list):
        deltas = []
        for item in investigations["pathology_deltas"]:
            if isinstance(item, dict):
                item = dict(item)
                item["old_value"] = _coerce_scalar(item.get("old_value"))
                item["new_value"] = _coerce_scalar(item.get("new_value"))
            deltas.append(item)
        payload["investigations"] = {**investigations, "pathology_deltas": deltas}
    return payload


def _clean_deltas(deltas: List[Delta], cap: int) -> List[Delta]:
    """Keep only real changes; a value that disappeared is reported as stable."""
    cleaned = []
    for delta in deltas:
        old_blank, new_blank = _blank(delta.old_value), _blank(delta.new_value)
        if old_blank and new_blank:
            continue
        if not old_blank and not new_blank and delta.old_value.strip().casefold() == delta.new_value.strip().casefold():
            continue
        if new_blank and delta.trend != DeltaTrend.STABLE:
            delta = delta.model_copy(update={"trend": DeltaTrend.STABLE})
        cleaned.append(delta)
    return cleaned[:cap]


def reconcile_investigations(
    model_block: Optional[Investigations],
    analysis: PatientAnalysis,
    cap: int,
) -> Investigations:
    """
    Merge the model's investigations block with local analysis.

    Missing sub-fields are backfilled; ``pathology_deltas`` always follows the
    local structured report count (None for zero, [] for one, capped list for two or more).
    """
    local = analysis.investigations(labs_summary(analysis.patient))
    if model_block is None:
        return local

    if analysis.report_count == 0:
        comparison_text, deltas = None, None
    elif analysis.report_count == 1:
        comparison_text = model_block.pathology_comparison_text
        if _blank(comparison_text):
            comparison_text = local.pathology_comparison_text
        deltas = []
    else:
        comparison_text = model_block.pathology_comparison_text
        if _blank(comparison_text):
            comparison_text = local.pathology_comparison_text
        model_deltas = _clean_deltas(model_block.pathology_deltas or [], cap)
        deltas = model_deltas if model_deltas else list(local.pathology_deltas or [])[:cap]

    return Investigations(
        pathology_summary=(
            local.pathology_summary if _blank(model_block.pathology_summary) else model_block.pathology_summary
        ),
        pathology_comparison_text=comparison_text,
        pathology_deltas=deltas,
        labs_summary=local.labs_summary if _blank(model_block.labs_summary) else model_block.labs_summary,
    )


def reconcile(raw: Dict[str, Any], analysis: PatientAnalysis, cap: Optional[int] = None) -> MasterAIResponse:
    """
    Validate a model payload and backfill what it left out.

    Args:
        raw: Parsed JSON object returned through the gateway
        analysis: Local analytics for the same patient
        cap: Maximum pathology deltas; defaults to the configured value

    Returns:
        MasterAIResponse tagged as AI-sourced

    Raises:
        ValidationError: If a required section is missing or an enum value is invalid
    """
    if cap is None:
        cap = get_settings().max_pathology_deltas

    response = MasterAIResponse.model_validate(_prepare_payload(raw))
    updates: Dict[str, Any] = {
        "investigations": reconcile_investigations(response.investigations, analysis, cap),
        "insight_source": InsightSource.AI,
    }
    if _blank(response.current_status_summary):
        updates["current_status_summary"] = status_summary(analysis.patient, analysis)
    if _blank(response.stage_summary):
        updates["stage_summary"] = analysis.stages.stage_summary
    return response.model_copy(update=updates)


class InsightService:
    """
    Produces one MasterAIResponse per patient.

    The model is asked first; a timeout, gateway failure, unparseable payload or
    schema violation switches the whole response to the deterministic builder.
    Results are memoized per patient through the injected cache.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        cache: InsightCache,
        prompt_loader: PromptLoader,
        timeout_seconds: float = 25.0,
    ):
        self.gateway = gateway
        self.cache = cache
        self.prompt_loader = prompt_loader
        self.timeout_seconds = timeout_seconds

    async def get_insights(
        self,
        patient: Patient,
        analysis: Optional[PatientAnalysis] = None,
    ) -> MasterAIResponse:
        """
        Insight object for a patient; never raises.

        Args:
            patient: Canonical patient record
            analysis: Precomputed analytics bundle for the same request

        Returns:
            Model-derived insights, or the deterministic fallback
        """
        return await self.cache.get_or_create(
            patient.patient_id,
            lambda: self._generate(patient, analysis),
        )

    async def _generate(self, patient: Patient, analysis: Optional[PatientAnalysis]) -> MasterAIResponse:
        if analysis is None:
            analysis = PatientAnalysis.build(patient)

        try:
            raw = await asyncio.wait_for(self._request(patient), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Insight generation timed out, using fallback",
                patient_id=patient.patient_id,
                timeout_seconds=self.timeout_seconds,
            )
            return build_fallback_insights(patient, analysis)
        except LLMGatewayError as e:
            logger.warning("Insight generation failed, using fallback", patient_id=patient.patient_id, error=str(e))
            return build_fallback_insights(patient, analysis)
        except Exception as e:
            logger.error("Unexpected insight generation error, using fallback", patient_id=patient.patient_id, error=str(e))
            return build_fallback_insights(patient, analysis)

        try:
            response = reconcile(raw, analysis)
        except ValidationError as e:
            logger.warning(
                "Model insights failed validation, using fallback",
                patient_id=patient.patient_id,
                errors=e.error_count(),
            )
            return build_fallback_insights(patient, analysis)

        logger.info(
            "Insights generated",
            patient_id=patient.patient_id,
            provider=raw.get("provider"),
            report_count=analysis.report_count,
        )
        return response

    async def _request(self, patient: Patient) -> Dict[str, Any]:
        settings = get_settings()
        system_prompt = self.prompt_loader.load(
            SYSTEM_PROMPT_PATH,
            {
                "trend_threshold_pct": f"{settings.trend_threshold_pct:g}",
                "max_pathology_deltas": settings.max_pathology_deltas,
            },
        )
        prompt = self.prompt_loader.load(
            USER_PROMPT_PATH,
            {"patient_json": patient.model_dump(mode="json")},
        )
        return await self.gateway.generate(
            task_category=TaskCategory.INSIGHT_GENERATION,
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=0.0,
            response_format="json",
        )


# Global instance
_insight_service: Optional[InsightService] = None


def get_insight_service() -> InsightService:
    """Get or create the global insight service."""
    global _insight_service
    if _insight_service is None:
        _insight_service = InsightService(
            gateway=get_llm_gateway(),
            cache=get_insight_cache(),
            prompt_loader=get_prompt_loader(),
            timeout_seconds=get_settings().insight_timeout_seconds,
        )
    return _insight_service
