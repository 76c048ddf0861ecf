"""LLM Gateway for task-based model routing."""
import json
import time
from typing import Dict, Any, Optional, List

from backend.models.enums import TaskCategory, LLMProvider
from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.reasoning.claude_client import ClaudeClient, ClaudeClientError
from backend.reasoning.gemini_client import GeminiClient, GeminiError
from backend.reasoning.openai_client import AzureOpenAIClient, AzureOpenAIError

logger = get_logger(__name__)

# Provider name → enum mapping
_PROVIDER_MAP = {provider.value: provider for provider in LLMProvider}

# Task category name → enum mapping
_TASK_MAP = {cat.value: cat for cat in TaskCategory}

DEFAULT_ROUTING: Dict[TaskCategory, List[LLMProvider]] = {
    TaskCategory.INSIGHT_GENERATION: [LLMProvider.GEMINI, LLMProvider.AZURE_OPENAI],
    TaskCategory.CLINICAL_SUMMARY: [LLMProvider.GEMINI, LLMProvider.CLAUDE],
}

# Approximate USD per 1K tokens, used only for the usage log line
_COST_PER_1K = {
    LLMProvider.CLAUDE: {"input": 0.003, "output": 0.015},
    LLMProvider.GEMINI: {"input": 0.0003, "output": 0.0025},
    LLMProvider.AZURE_OPENAI: {"input": 0.0025, "output": 0.01},
}


def load_task_model_routing(config_path=None) -> Dict[TaskCategory, List[LLMProvider]]:
    """Load task-to-model routing from config file.

    Tasks missing from the file keep their default route; an unreadable file
    falls back to the defaults entirely.
    """
    if config_path is None:
        settings = get_settings()
        config_path = settings.resolve_path(settings.llm_routing_path)

    routing = dict(DEFAULT_ROUTING)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for task_name, providers in data.get("routing", {}).items():
            task_cat = _TASK_MAP.get(task_name)
            if task_cat is None:
                logger.warning("Unknown task category in routing config", task=task_name)
                continue
            provider_list = [_PROVIDER_MAP[p] for p in providers if p in _PROVIDER_MAP]
            if provider_list:
                routing[task_cat] = provider_list
        logger.info("LLM routing loaded from config", tasks=len(routing), path=str(config_path))
    except (OSError, json.JSONDecodeError, AttributeError) as e:
        logger.warning("Could not load LLM routing config, using defaults", error=str(e))
    return routing


class LLMGatewayError(Exception):
    """Error from LLM Gateway."""
    pass


class LLMGateway:
    """
    Central gateway for LLM requests with task-based routing.

    Routes requests to models based on task category:
    - Insight generation → Gemini (primary) → Azure OpenAI (fallback)
    - Clinical summary → Gemini (primary) → Claude (fallback)
    """

    def __init__(self, routing: Optional[Dict[TaskCategory, List[LLMProvider]]] = None):
        """Initialize the LLM Gateway; provider clients are created on first use."""
        self.routing = routing if routing is not None else load_task_model_routing()
        self._claude_client: Optional[ClaudeClient] = None
        self._gemini_client: Optional[GeminiClient] = None
        self._azure_client: Optional[AzureOpenAIClient] = None
        logger.info("LLM Gateway initialized")

    @property
    def claude_client(self) -> ClaudeClient:
        """Lazy-load Claude client."""
        if self._claude_client is None:
            self._claude_client = ClaudeClient()
        return self._claude_client

    @property
    def gemini_client(self) -> GeminiClient:
        """Lazy-load Gemini client."""
        if self._gemini_client is None:
            self._gemini_client = GeminiClient()
        return self._gemini_client

    @property
    def azure_client(self) -> AzureOpenAIClient:
        """Lazy-load Azure OpenAI client."""
        if self._azure_client is None:
            self._azure_client = AzureOpenAIClient()
        return self._azure_client

    def providers_for(self, task_category: TaskCategory) -> List[LLMProvider]:
        return self.routing.get(task_category) or DEFAULT_ROUTING[task_category]

    async def generate(
        self,
        task_category: TaskCategory,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        response_format: str = "text"
    ) -> Dict[str, Any]:
        """
        Generate content using the appropriate model for the task.

        Args:
            task_category: Category of task for routing
            prompt: The generation prompt
            system_prompt: Optional system instruction
            temperature: Temperature for generation
            response_format: Expected format ("json" or "text")

        Returns:
            Generated response with ``provider`` and ``task_category`` added

        Raises:
            LLMGatewayError: If all configured providers fail for the task
        """
        providers = self.providers_for(task_category)

        logger.info(
            "Routing LLM request",
            task_category=task_category.value,
            providers=[p.value for p in providers]
        )

        last_error = None

        for provider in providers:
            try:
                start_time = time.monotonic()
                result = await self._call_provider(
                    provider=provider,
                    prompt=prompt,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    response_format=response_format
                )
                latency_ms = int((time.monotonic() - start_time) * 1000)
                result["provider"] = provider.value
                result["task_category"] = task_category.value

                usage = result.pop("_usage", None)
                if usage:
                    self._log_usage(provider, task_category, usage, latency_ms)

                return result

            except (ClaudeClientError, GeminiError, AzureOpenAIError) as e:
                last_error = e
                logger.warning(
                    "Provider failed, trying fallback",
                    provider=provider.value,
                    error=str(e)
                )
                continue

            except Exception as e:
                last_error = e
                logger.error(
                    "Unexpected error from provider",
                    provider=provider.value,
                    error=str(e)
                )
                continue

        raise LLMGatewayError(
            f"All providers failed for task {task_category.value}: {last_error}"
        )

    async def _call_provider(
        self,
        provider: LLMProvider,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        response_format: str
    ) -> Dict[str, Any]:
        """Call a specific provider."""
        if provider == LLMProvider.CLAUDE:
            client = self.claude_client
        elif provider == LLMProvider.GEMINI:
            client = self.gemini_client
        elif provider == LLMProvider.AZURE_OPENAI:
            client = self.azure_client
        else:
            raise ValueError(f"Unknown provider: {provider}")

        return await client.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            response_format=response_format
        )

    @staticmethod
    def _log_usage(
        provider: LLMProvider,
        task_category: TaskCategory,
        usage: Dict[str, Any],
        latency_ms: int,
    ) -> None:
        """Emit one structured usage line per successful call."""
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0
        rates = _COST_PER_1K.get(provider, {"input": 0.001, "output": 0.002})
        estimated_cost = (input_tokens / 1000 * rates["input"]) + (output_tokens / 1000 * rates["output"])
        logger.info(
            "LLM usage",
            provider=provider.value,
            model=usage.get("model", "unknown"),
            task_category=task_category.value,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
            cost=f"${estimated_cost:.6f}",
        )

    async def health_check(self) -> Dict[str, bool]:
        """Check health of every provider that appears in the routing table."""
        results = {}
        routed = {provider for providers in self.routing.values() for provider in providers}

        for provider in LLMProvider:
            if provider not in routed:
                continue
            try:
                if provider == LLMProvider.CLAUDE:
                    results[provider.value] = await self.claude_client.health_check()
                elif provider == LLMProvider.GEMINI:
                    results[provider.value] = await self.gemini_client.health_check()
                else:
                    results[provider.value] = await self.azure_client.health_check()
            except Exception as e:
                logger.warning("Provider health check errored", provider=provider.value, error=str(e))
                results[provider.value] = False

        return results


# Global instance
_llm_gateway: Optional[LLMGateway] = None


def get_llm_gateway() -> LLMGateway:
    """Get or create the global LLM Gateway instance."""
    global _llm_gateway
    if _llm_gateway is None:
        _llm_gateway = LLMGateway()
    return _llm_gateway
