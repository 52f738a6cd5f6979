"""Abstract base class for LLM service providers.

Defines the contract for the text-completion backend.  It is used twice:
by the semantic chunker (structured JSON expected) and by the retrieval
engine for the final grounded answer (free text expected).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from studykb.models.rag import LLMCompletion


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: studykb/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> LLMCompletion:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        json_mode:
            Ask the backend for a JSON object response where supported.

        Returns
        -------
        LLMCompletion
            The model's text plus prompt/completion token counts and cost.

        Raises
        ------
        studykb.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations check credentials without making an inference call.
        """
