"""Model-aware token counting with a character-based approximation.

Uses ``tiktoken`` for the configured completion model.  When the encoding
cannot be loaded (unknown model, no network for the BPE download) or a
single encode call raises, the count degrades to ``ceil(len(text) / 4)``.
The same counter is shared by the chunker and the pipeline so every size
decision uses one consistent measure.
"""

from __future__ import annotations

import math

import structlog
import tiktoken

logger = structlog.get_logger(logger_name=__name__)

_FALLBACK_ENCODING = "cl100k_base"


def approximate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``, the tokenizer-free estimate."""
    return math.ceil(len(text) / 4)


class TokenCounter:
    """Counts tokens for a given model, falling back to the char estimate.

    Parameters
    ----------
    model:
        Completion model name used to pick the BPE encoding.  Unknown models
        use ``cl100k_base``.
    use_tokenizer:
        When ``False`` the approximation is always used (deterministic
        counts, no encoding download).
    """

    def __init__(self, model: str = "gpt-4o-mini", use_tokenizer: bool = True) -> None:
        self._model = model
        self._encoding = self._load_encoding(model) if use_tokenizer else None

    @property
    def uses_tokenizer(self) -> bool:
        return self._encoding is not None

    def count(self, text: str) -> int:
        """Return the number of tokens in *text*."""
        if not text:
            return 0
        if self._encoding is None:
            return approximate_tokens(text)
        try:
            return len(self._encoding.encode(text, disallowed_special=()))
        except Exception as exc:  # noqa: BLE001
            logger.debug("token_count_fallback", model=self._model, error=str(exc))
            return approximate_tokens(text)

    @staticmethod
    def _load_encoding(model: str):  # noqa: ANN205
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            pass
        except Exception as exc:  # noqa: BLE001
            logger.info("tiktoken_unavailable", model=model, error=str(exc))
            return None
        try:
            return tiktoken.get_encoding(_FALLBACK_ENCODING)
        except Exception as exc:  # noqa: BLE001
            logger.info(
                "tiktoken_unavailable",
                model=model,
                error=str(exc),
                msg="Falling back to approximate token counting (ceil(len / 4)).",
            )
            return None
