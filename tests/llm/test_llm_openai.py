"""
Tests for OpenAI LLM provider.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest
from pydantic import BaseModel

from worldgraph.core.llm.openai import OpenAILLM
from worldgraph.utils.exceptions import LLMError, LLMTimeoutError, ValidationError


class SimpleResponse(BaseModel):
    """Test response model."""

    verdict: str
    reason: str


def completion(content=None, parsed=None):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content, parsed=parsed))]
    return response


@pytest.fixture
def openai_llm():
    """Create OpenAI LLM for testing."""
    return OpenAILLM(api_key="test-key", model="gpt-4o", timeout=120.0)


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAILLM:
    """Test OpenAI LLM provider."""

    async def test_initialization(self, openai_llm):
        assert openai_llm.model == "gpt-4o"
        assert openai_llm.client.max_retries == 0

    async def test_complete_simple(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = completion(content="A foggy harbour.")

            result = await openai_llm.complete("Describe a harbour.", max_tokens=100)

            assert result == "A foggy harbour."
            kwargs = mock_create.call_args.kwargs
            assert kwargs["model"] == "gpt-4o"
            assert kwargs["max_tokens"] == 100
            assert kwargs["messages"] == [{"role": "user", "content": "Describe a harbour."}]

    async def test_structured_output(self, openai_llm):
        parsed = SimpleResponse(verdict="consistent", reason="open ground")
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            mock_parse.return_value = completion(parsed=parsed)

            result = await openai_llm.complete("Judge this.", response_format=SimpleResponse)

            assert result is parsed
            assert mock_parse.call_args.kwargs["response_format"] is SimpleResponse

    async def test_empty_parsed_response(self, openai_llm):
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            mock_parse.return_value = completion(parsed=None)

            with pytest.raises(ValidationError, match="empty parsed response"):
                await openai_llm.complete("Judge this.", response_format=SimpleResponse)

    async def test_empty_content(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = completion(content="")

            with pytest.raises(LLMError, match="empty content"):
                await openai_llm.complete("Describe a harbour.")

    async def test_empty_prompt(self, openai_llm):
        with pytest.raises(ValidationError, match="Prompt cannot be empty"):
            await openai_llm.complete("   ")

    async def test_timeout(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = openai.APITimeoutError(request=MagicMock())

            with pytest.raises(LLMTimeoutError):
                await openai_llm.complete("Describe a harbour.")

    async def test_api_error(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = RuntimeError("boom")

            with pytest.raises(LLMError, match="OpenAI API error: boom") as exc_info:
                await openai_llm.complete("Describe a harbour.")

            assert not isinstance(exc_info.value, LLMTimeoutError)

    async def test_close(self, openai_llm):
        with patch.object(openai_llm.client, "close", new_callable=AsyncMock) as mock_close:
            await openai_llm.close()

            mock_close.assert_awaited_once()
