"""Gemini client - primary provider for patient insights and clinical summaries."""
from typing import Dict, Any, Optional

from google import genai
from google.genai import types
from google.api_core.exceptions import (
    GoogleAPIError,
    ServiceUnavailable,
    TooManyRequests,
    DeadlineExceeded,
)
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.reasoning.json_utils import extract_json_from_text

logger = get_logger(__name__)

# Worth a second attempt; anything else fails the provider straight away
_TRANSIENT_ERRORS = (
    GoogleAPIError, ServiceUnavailable, TooManyRequests,
    DeadlineExceeded, ConnectionError, TimeoutError,
)


class GeminiError(Exception):
    """Gemini could not produce a usable insight or summary payload."""
    pass


def _usage_of(response: Any, model: str) -> Dict[str, Any]:
    meta = getattr(response, "usage_metadata", None)
    return {
        "input_tokens": getattr(meta, "prompt_token_count", 0) or 0,
        "output_tokens": getattr(meta, "candidates_token_count", 0) or 0,
        "model": model,
    }


def _block_reason(response: Any) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    return str(reason) if reason else None


class GeminiClient:
    """
    Gemini client used by the gateway for insight generation and clinical summaries.

    Both tasks ask for a bare JSON object, so JSON requests set the JSON
    response MIME type. Transient API failures are retried once; everything
    else surfaces as GeminiError so the gateway can move to the next provider.
    """

    def __init__(self):
        settings = get_settings()
        self.client = genai.Client(api_key=settings.gemini_api_key)
        self.model_name = settings.gemini_model
        self.max_output_tokens = settings.gemini_max_output_tokens
        logger.info("Gemini client initialized", model=self.model_name)

    def _config(
        self,
        system_prompt: Optional[str],
        temperature: float,
        response_format: str,
    ) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=self.max_output_tokens,
            system_instruction=system_prompt or None,
            response_mime_type="application/json" if response_format == "json" else None,
        )

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True
    )
    async def _call(self, prompt: str, config: types.GenerateContentConfig) -> Any:
        return await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=config,
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        response_format: str = "text"
    ) -> Dict[str, Any]:
        """
        Run one insight or summary prompt.

        Args:
            prompt: Rendered user prompt carrying the patient JSON
            system_prompt: Rendered system prompt for the task
            temperature: Sampling temperature
            response_format: "json" for the insight/summary payloads, "text" otherwise

        Returns:
            The parsed payload, or {"response": text} for text requests,
            with token counts under "_usage"

        Raises:
            GeminiError: If the call fails, is blocked, or returns no usable JSON
        """
        logger.info("Generating with Gemini", model=self.model_name, response_format=response_format)
        config = self._config(system_prompt, temperature, response_format)

        try:
            response = await self._call(prompt, config)
        except Exception as e:
            logger.error("Gemini generation failed", model=self.model_name, error=str(e))
            raise GeminiError(f"Gemini generation failed: {e}") from e

        text = response.text
        if not text:
            reason = _block_reason(response)
            if reason:
                raise GeminiError(f"Gemini blocked the prompt: {reason}")
            raise GeminiError("Empty response from Gemini")

        usage = _usage_of(response, self.model_name)
        logger.debug("Gemini response received", length=len(text), **usage)

        if response_format != "json":
            return {"response": text, "_usage": usage}
        try:
            payload = extract_json_from_text(text)
        except ValueError as e:
            raise GeminiError(f"Gemini returned no JSON object: {e}") from e
        payload["_usage"] = usage
        return payload

    async def health_check(self) -> bool:
        """Check if Gemini API is accessible."""
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents="Reply with 'ok'",
                config=types.GenerateContentConfig(max_output_tokens=10),
            )
            return "ok" in (response.text or "").lower()
        except Exception as e:
            logger.error("Gemini health check failed", error=str(e))
            return False
