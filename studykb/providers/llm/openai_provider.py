"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When a custom ``openai_base_url`` is configured (TogetherAI, Fireworks,
Groq, ...) the client points at that URL instead of the OpenAI endpoint.

JSON mode maps to ``response_format={"type": "json_object"}``; the
semantic chunker uses it so the model returns a parseable object.
"""

from __future__ import annotations

import openai
import structlog

from studykb.config.settings import Settings
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.models.rag import LLMCompletion
from studykb.providers.llm.pricing import estimate_cost
from studykb.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default; override with ``OPENAI_TEXT_MODEL``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> LLMCompletion:
        """Generate a text completion via the OpenAI-compatible chat API."""
        request: dict = {
            "model": self._text_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out after "
                f"{self._settings.llm_timeout_seconds:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )

        prompt_tokens = response.usage.prompt_tokens if response.usage else 0
        completion_tokens = response.usage.completion_tokens if response.usage else 0
        cost = estimate_cost(self._text_model, prompt_tokens, completion_tokens)
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            json_mode=json_mode,
            tokens=prompt_tokens + completion_tokens,
            cost=round(cost, 6),
        )
        return LLMCompletion(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
            model=self._text_model,
            provider=self._provider_label,
        )

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label
