"""
Narrative oracles: prose generators behind a narrow, untrusted interface.
"""

from worldgraph.core.oracle.base import NarrativeOracle
from worldgraph.core.oracle.llm_oracle import LLMNarrativeOracle, OracleBatchOutput

__all__ = [
    "NarrativeOracle",
    "LLMNarrativeOracle",
    "OracleBatchOutput",
]
