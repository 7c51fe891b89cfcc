"""Regex based safety classifier."""

import re

from worldgraph.core.safety.base import SafetyClassifier, SafetyVerdict
from worldgraph.utils.exceptions import ConfigurationError


class PatternSafetyClassifier(SafetyClassifier):
    """Rejects text matching any configured pattern (case-insensitive)."""

    def __init__(self, patterns: list[str]):
        try:
            self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        except re.error as e:
            raise ConfigurationError(
                f"Invalid safety pattern: {e}", context={"pattern": e.pattern}
            ) from e

    async def classify(self, text: str) -> SafetyVerdict:
        for pattern in self.patterns:
            match = pattern.search(text)
            if match:
                return SafetyVerdict(
                    allowed=False, reason=f"matched blocked pattern '{match.group(0)}'"
                )
        return SafetyVerdict(allowed=True)
