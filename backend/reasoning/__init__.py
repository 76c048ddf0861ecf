"""Reasoning and LLM integration module."""
from .prompt_loader import PromptLoader
from .llm_gateway import LLMGateway, LLMGatewayError, TaskCategory
from .claude_client import ClaudeClient
from .gemini_client import GeminiClient
from .openai_client import AzureOpenAIClient
from .insight_cache import InsightCache
from .fallback_insights import build_fallback_insights
from .insight_service import InsightService
from .clinical_summary import ClinicalSummaryService, build_deterministic_summary

__all__ = [
    "PromptLoader",
    "LLMGateway",
    "LLMGatewayError",
    "TaskCategory",
    "ClaudeClient",
    "GeminiClient",
    "AzureOpenAIClient",
    "InsightCache",
    "build_fallback_insights",
    "InsightService",
    "ClinicalSummaryService",
    "build_deterministic_summary",
]
