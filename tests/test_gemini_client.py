"""Tests for the Gemini provider client."""

from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, patch

from backend.reasoning.gemini_client import GeminiClient, GeminiError


def _response(text, block_reason=None):
    return SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(prompt_token_count=1200, candidates_token_count=300),
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
    )


@pytest.fixture
def client():
    with patch("backend.reasoning.gemini_client.genai.Client"):
        gemini = GeminiClient()
    gemini.client.aio.models.generate_content = AsyncMock()
    return gemini


class TestGeminiGenerate:
    """Tests for GeminiClient.generate."""

    @pytest.mark.asyncio
    async def test_json_payload_with_usage(self, client):
        """Test that a fenced insight payload is parsed and usage attached."""
        client.client.aio.models.generate_content.return_value = _response(
            '```json\n{"sidebar": {"stage_summary": "Stage IV"}}\n```'
        )

        result = await client.generate("prompt", system_prompt="system", temperature=0.2, response_format="json")

        assert result["sidebar"] == {"stage_summary": "Stage IV"}
        assert result["_usage"]["input_tokens"] == 1200
        assert result["_usage"]["output_tokens"] == 300
        config = client.client.aio.models.generate_content.await_args.kwargs["config"]
        assert config.response_mime_type == "application/json"
        assert config.temperature == 0.2

    @pytest.mark.asyncio
    async def test_text_response(self, client):
        client.client.aio.models.generate_content.return_value = _response("Stable disease.")
        result = await client.generate("prompt")
        assert result["response"] == "Stable disease."

    @pytest.mark.asyncio
    async def test_prose_instead_of_json(self, client):
        client.client.aio.models.generate_content.return_value = _response("I cannot summarize this record.")
        with pytest.raises(GeminiError):
            await client.generate("prompt", response_format="json")

    @pytest.mark.asyncio
    async def test_blocked_prompt(self, client):
        """Test that a safety block is reported with its reason."""
        client.client.aio.models.generate_content.return_value = _response("", block_reason="SAFETY")
        with pytest.raises(GeminiError, match="SAFETY"):
            await client.generate("prompt", response_format="json")

    @pytest.mark.asyncio
    async def test_non_transient_error_is_wrapped(self, client):
        client.client.aio.models.generate_content.side_effect = ValueError("bad request")
        with pytest.raises(GeminiError):
            await client.generate("prompt")
        assert client.client.aio.models.generate_content.await_count == 1


class TestGeminiHealth:
    """Tests for GeminiClient.health_check."""

    @pytest.mark.asyncio
    async def test_ok_reply(self, client):
        client.client.aio.models.generate_content.return_value = _response("OK")
        assert await client.health_check() is True

    @pytest.mark.asyncio
    async def test_error_is_unhealthy(self, client):
        client.client.aio.models.generate_content.side_effect = ConnectionError("offline")
        assert await client.health_check() is False
