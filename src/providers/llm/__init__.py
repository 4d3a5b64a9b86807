"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OllamaLLMProvider  -- local models via an Ollama server (mistral by default)
    - OpenAILLMProvider  -- gpt-4o-mini or any OpenAI-compatible chat API

main.py picks one according to ``LLM_BACKEND`` (``auto`` prefers OpenAI
when OPENAI_API_KEY is set) and injects it into the RAG answer service and
the fact extractor.
"""

from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider"]
