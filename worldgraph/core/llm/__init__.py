"""
LLM provider abstraction layer for text generation.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""
from worldgraph.core.llm.base import LLMProvider
from worldgraph.core.llm.ollama import OllamaLLM
from worldgraph.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
]
