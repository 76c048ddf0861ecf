"""Azure OpenAI client - fallback for insight generation."""
import json
from typing import Dict, Any, Optional

from openai import AsyncAzureOpenAI, APIConnectionError, RateLimitError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.reasoning.json_utils import extract_json_from_text

logger = get_logger(__name__)


class AzureOpenAIError(Exception):
    """Error in Azure OpenAI API call."""
    pass


class AzureOpenAIClient:
    """
    Azure OpenAI client for insight generation.
    Used as fallback when Gemini fails.
    """

    def __init__(self):
        """Initialize the Azure OpenAI client."""
        settings = get_settings()
        self.client = AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
            azure_endpoint=settings.azure_openai_endpoint,
            timeout=60.0
        )
        self.deployment = settings.azure_openai_deployment
        self.max_tokens = settings.azure_max_output_tokens
        logger.info("Azure OpenAI client initialized", deployment=self.deployment)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type((APIConnectionError, RateLimitError)),
        reraise=True
    )
    async def _create_completion(self, request_params: Dict[str, Any]):
        """Inner call that tenacity retries on transient errors."""
        return await self.client.chat.completions.create(**request_params)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        response_format: str = "text"
    ) -> Dict[str, Any]:
        """
        Generate content using Azure OpenAI.

        Args:
            prompt: The generation prompt
            system_prompt: Optional system instruction
            temperature: Temperature for generation
            response_format: Expected format ("json" or "text")

        Returns:
            Parsed JSON object, or {"response": text} for text requests

        Raises:
            AzureOpenAIError: If generation fails
        """
        logger.info("Generating with Azure OpenAI", deployment=self.deployment)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request_params = {
            "model": self.deployment,
            "messages": messages,
            "max_completion_tokens": self.max_tokens,
        }
        if response_format == "json":
            request_params["response_format"] = {"type": "json_object"}
        # Reasoning "mini" deployments reject an explicit temperature
        if "mini" not in self.deployment.lower():
            request_params["temperature"] = temperature

        try:
            response = await self._create_completion(request_params)

            if not response.choices:
                raise AzureOpenAIError("No choices in Azure OpenAI response")
            response_text = response.choices[0].message.content
            if not response_text:
                raise AzureOpenAIError("Empty response from Azure OpenAI")

            usage_meta = getattr(response, "usage", None)
            usage = {
                "input_tokens": getattr(usage_meta, "prompt_tokens", 0) if usage_meta else 0,
                "output_tokens": getattr(usage_meta, "completion_tokens", 0) if usage_meta else 0,
                "model": self.deployment,
            }
            logger.debug("Azure OpenAI response received", length=len(response_text))

            if response_format == "json":
                parsed = extract_json_from_text(response_text)
                parsed["_usage"] = usage
                return parsed
            return {"response": response_text, "_usage": usage}

        except AzureOpenAIError:
            raise
        except json.JSONDecodeError as e:
            logger.error("Failed to parse Azure OpenAI response as JSON", error=str(e))
            raise AzureOpenAIError(f"Invalid JSON response: {e}") from e
        except Exception as e:
            logger.error("Azure OpenAI generation failed", error=str(e))
            raise AzureOpenAIError(f"Azure OpenAI generation failed: {e}") from e

    async def health_check(self) -> bool:
        """Check if Azure OpenAI API is accessible."""
        try:
            response = await self.client.chat.completions.create(
                model=self.deployment,
                messages=[{"role": "user", "content": "Reply with 'ok'"}],
                max_completion_tokens=10
            )
            content = response.choices[0].message.content if response.choices else None
            return bool(content) and "ok" in content.lower()
        except Exception as e:
            logger.error("Azure OpenAI health check failed", error=str(e))
            return False
