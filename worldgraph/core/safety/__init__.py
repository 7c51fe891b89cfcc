"""
Safety classifiers for generated prose.
"""

from worldgraph.core.safety.base import SafetyClassifier, SafetyVerdict
from worldgraph.core.safety.llm_classifier import LLMSafetyClassifier
from worldgraph.core.safety.pattern import PatternSafetyClassifier

__all__ = [
    "SafetyClassifier",
    "SafetyVerdict",
    "LLMSafetyClassifier",
    "PatternSafetyClassifier",
]
