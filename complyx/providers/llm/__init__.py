"""LLM provider implementations."""

from complyx.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
