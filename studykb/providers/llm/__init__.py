"""LLM provider adapters.

Two concrete implementations of ILLMProvider (studykb/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o-mini by default (also OpenAI-compatible APIs)
    - AnthropicLLMProvider -- Claude Sonnet

main.py creates the provider named by LLM_PROVIDER, or the first one with
an API key configured.
"""

from studykb.providers.llm.anthropic_provider import AnthropicLLMProvider
from studykb.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
