"""LLM based safety classifier."""

from pydantic import BaseModel

from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.safety.base import SafetyClassifier, SafetyVerdict
from worldgraph.utils.exceptions import LLMError, SafetyClassifierError, ValidationError
from worldgraph.utils.logger import get_logger

logger = get_logger(__name__)


class SafetyOutput(BaseModel):
    allowed: bool
    reason: str = ""


class LLMSafetyClassifier(SafetyClassifier):
    """
    Asks an LLM whether generated location prose is fit for a general audience.

    Provider failures surface as SafetyClassifierError; they are never
    turned into an "allowed" verdict.
    """

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def classify(self, text: str) -> SafetyVerdict:
        prompt = f"""You review location descriptions for a text adventure played by a general audience.
Reject text containing graphic violence, sexual content, hate speech or real-world personal data.

Text:
{text}

Respond with allowed (true/false) and a short reason."""

        try:
            output = await self.llm.complete(
                prompt, response_format=SafetyOutput, max_tokens=200, temperature=0.0
            )
        except (LLMError, ValidationError) as e:
            logger.error(
                f"Safety classification failed: {e}",
                extra={"error_type": type(e).__name__},
            )
            raise SafetyClassifierError(f"Safety classification failed: {e}") from e

        return SafetyVerdict(allowed=output.allowed, reason=output.reason)

    async def close(self) -> None:
        await self.llm.close()
