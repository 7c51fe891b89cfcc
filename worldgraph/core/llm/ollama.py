"""
Ollama LLM provider using native ollama-python SDK.
"""

import asyncio
import json
from typing import Any

import ollama
from pydantic import BaseModel

from worldgraph.core.llm.base import LLMProvider
from worldgraph.utils.exceptions import LLMError, LLMTimeoutError, ValidationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider for text generation.

    Uses native ollama-python SDK for chat completions
    with JSON mode for structured outputs.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 30.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name for text generation (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host)

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using Ollama.

        Supports structured output via JSON mode and an example built from the schema.

        Raises:
            LLMTimeoutError: If no answer arrives within the timeout
            LLMError: If the Ollama call fails
            ValidationError: If structured output parsing fails
        """
        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.get("options", {}),
        }

        format_type = None
        messages = [{"role": "user", "content": prompt}]

        if response_format:
            format_type = "json"
            schema = response_format.model_json_schema()
            example = self._example_from_schema(schema, schema.get("$defs", {}))
            example_str = json.dumps(example, indent=2)

            enhanced_prompt = f"""{prompt}

You MUST respond with valid JSON matching this structure:
{example_str}

IMPORTANT:
- Replace placeholder values like "<field_name>" with actual content
- Return ONLY valid JSON, no markdown formatting or extra text
- Do not return the schema itself, return actual data"""

            messages = [{"role": "user", "content": enhanced_prompt}]

        try:
            response = await asyncio.wait_for(
                self.client.chat(
                    model=self.model,
                    messages=messages,
                    format=format_type,
                    options=options,
                    **{k: v for k, v in kwargs.items() if k != "options"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Ollama request timed out after {self.timeout}s",
                extra={"model": self.model, "host": self.host},
            )
            raise LLMTimeoutError(
                f"Ollama request timed out after {self.timeout}s",
                context={"model": self.model},
            ) from e
        except Exception as e:
            logger.error(
                f"Ollama API error: {e}",
                extra={"model": self.model, "error": str(e), "error_type": type(e).__name__},
            )
            raise LLMError(f"Ollama API error: {e}", context={"model": self.model}) from e

        content = response["message"]["content"]

        if response_format:
            cleaned = self._extract_json(content)
            try:
                parsed = json.loads(cleaned)
            except json.JSONDecodeError as e:
                raise ValidationError(
                    f"Failed to parse structured output: {e}",
                    context={"raw": content[:500], "expected": response_format.__name__},
                ) from e
            if isinstance(parsed, dict) and "properties" in parsed and "type" in parsed:
                raise ValidationError(
                    "LLM returned the JSON schema instead of actual data",
                    context={"expected": response_format.__name__},
                )
            try:
                return response_format.model_validate(parsed)
            except Exception as e:
                raise ValidationError(
                    f"Structured output does not match {response_format.__name__}: {e}",
                    context={"raw": content[:500]},
                ) from e

        return content

    def _example_from_schema(self, schema: dict[str, Any], defs: dict[str, Any]) -> Any:
        """Build a small example value from a JSON schema, following $ref into $defs."""
        if "$ref" in schema:
            return self._example_from_schema(defs[schema["$ref"].split("/")[-1]], defs)
        if "anyOf" in schema:
            options = [s for s in schema["anyOf"] if s.get("type") != "null"]
            return self._example_from_schema(options[0], defs) if options else None

        field_type = schema.get("type", "string")
        if field_type == "object":
            return {
                name: (
                    f"<{name}>"
                    if info.get("type", "string") == "string" and "$ref" not in info
                    else self._example_from_schema(info, defs)
                )
                for name, info in schema.get("properties", {}).items()
            }
        if field_type == "array":
            return [self._example_from_schema(schema.get("items", {}), defs)]
        if field_type in ("number", "integer"):
            return 0.5
        if field_type == "boolean":
            return True
        return "<value>"

    def _extract_json(self, content: str) -> str:
        """
        Extract JSON from content that might have markdown formatting.

        Args:
            content: Raw content that may contain JSON

        Returns:
            Cleaned JSON string
        """
        content = content.strip()

        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        return content

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
