"""
Abstract base class for content safety classifiers.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class SafetyVerdict(BaseModel):
    allowed: bool
    reason: str = ""


class SafetyClassifier(ABC):
    """Abstract base for safety classification of generated text."""

    @abstractmethod
    async def classify(self, text: str) -> SafetyVerdict:
        """
        Classify a piece of generated text.

        Args:
            text: Text to classify

        Returns:
            SafetyVerdict; allowed=False rejects the text permanently

        Raises:
            SafetyClassifierError: If classification itself fails
        """
        pass

    async def close(self) -> None:
        pass
