"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Differences from the OpenAI adapter:
    - the system prompt is a separate parameter, not a message
    - the response is a list of content blocks; text blocks are joined
    - there is no JSON response mode, so ``json_mode`` appends an
      instruction to the system prompt instead
"""

from __future__ import annotations

import anthropic
import structlog

from studykb.config.settings import Settings
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.models.rag import LLMCompletion
from studykb.providers.llm.pricing import estimate_cost
from studykb.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_JSON_INSTRUCTION = "\n\nRespond with a single valid JSON object and nothing else."


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API.

    Uses ``claude-sonnet-4-20250514`` unless ``ANTHROPIC_MODEL`` is set.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key, timeout=settings.llm_timeout_seconds
        )
        self._model = settings.anthropic_model or "claude-sonnet-4-20250514"

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
        """Generate a text completion via the Anthropic Messages API."""
        system = system_prompt + _JSON_INSTRUCTION if json_mode else system_prompt
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        cost = estimate_cost(self._model, input_tokens, output_tokens)
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=round(cost, 6),
        )
        return LLMCompletion(
            content="\n".join(text_blocks),
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            cost=cost,
            model=self._model,
            provider=self.get_provider_name(),
        )

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
