"""Claude client - fallback for clinical summary generation."""
import json
from typing import Dict, Any, Optional

import anthropic
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from backend.config.settings import get_settings
from backend.config.logging_config import get_logger
from backend.reasoning.json_utils import extract_json_from_text

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "system/clinical_base.txt"


class ClaudeClientError(Exception):
    """Error in Claude API call."""
    pass


class ClaudeClient:
    """
    Claude client for clinical narrative tasks.

    Routed behind Gemini for clinical summaries; errors are wrapped in
    ClaudeClientError so the gateway can move on to the next provider.
    """

    def __init__(self):
        """Initialize the Claude client."""
        settings = get_settings()
        self.client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=120.0
        )
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_output_tokens
        logger.info("Claude client initialized", model=self.model)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((anthropic.APIConnectionError, anthropic.RateLimitError)),
        reraise=True
    )
    async def _make_api_call(self, temperature: float, system: str, prompt: str):
        """Inner method that tenacity retries on transient errors."""
        return await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}]
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        response_format: str = "json"
    ) -> Dict[str, Any]:
        """
        Generate content using Claude.

        Args:
            prompt: The generation prompt with all context
            system_prompt: Optional system prompt override
            temperature: Temperature for generation
            response_format: Expected response format ("json" or "text")

        Returns:
            Parsed JSON object, or {"response": text} for text requests

        Raises:
            ClaudeClientError: If generation fails
        """
        logger.info("Generating with Claude", model=self.model)

        try:
            if system_prompt is None:
                from backend.reasoning.prompt_loader import get_prompt_loader
                system_prompt = get_prompt_loader().load(DEFAULT_SYSTEM_PROMPT)

            message = await self._make_api_call(
                temperature=temperature,
                system=system_prompt,
                prompt=prompt
            )

            if not message.content:
                raise ClaudeClientError("Empty response from Claude (no content blocks)")

            response_text = message.content[0].text
            usage_meta = getattr(message, "usage", None)
            usage = {
                "input_tokens": getattr(usage_meta, "input_tokens", 0) if usage_meta else 0,
                "output_tokens": getattr(usage_meta, "output_tokens", 0) if usage_meta else 0,
                "model": self.model,
            }
            logger.debug("Claude response received", length=len(response_text))

            if response_format == "json":
                parsed = extract_json_from_text(response_text)
                parsed["_usage"] = usage
                return parsed
            return {"response": response_text, "_usage": usage}

        except ClaudeClientError:
            raise
        except anthropic.APIConnectionError as e:
            logger.error("Claude API connection error", error=str(e))
            raise ClaudeClientError(f"Claude API connection failed: {e}") from e
        except anthropic.RateLimitError as e:
            logger.error("Claude rate limit exceeded", error=str(e))
            raise ClaudeClientError(f"Claude rate limit exceeded: {e}") from e
        except anthropic.APIStatusError as e:
            logger.error("Claude API error", status_code=e.status_code, error=str(e))
            raise ClaudeClientError(f"Claude API error ({e.status_code}): {e}") from e
        except json.JSONDecodeError as e:
            logger.error("Failed to parse Claude response as JSON", error=str(e))
            raise ClaudeClientError(f"Invalid JSON response from Claude: {e}") from e
        except Exception as e:
            logger.error("Unexpected error in Claude generation", error=str(e))
            raise ClaudeClientError(f"Claude generation failed: {e}") from e

    async def health_check(self) -> bool:
        """Check if Claude API is accessible."""
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Reply with 'ok'"}]
            )
            return bool(message.content) and "ok" in message.content[0].text.lower()
        except Exception as e:
            logger.error("Claude health check failed", error=str(e))
            return False
