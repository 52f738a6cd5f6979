"""Per-model token pricing used to report the cost of a completion.

Prices are USD per one million tokens as ``(input, output)``.  Model names
are matched by longest prefix so dated snapshots such as
``gpt-4o-mini-2024-07-18`` resolve to their family price.
"""

from __future__ import annotations

_PRICE_PER_MILLION: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-5": (2.0, 8.0),
    "gpt-4o": (2.5, 10.0),
    "gpt-4o-mini": (0.15, 0.6),
    "o3-mini": (1.1, 4.4),
    # Anthropic
    "claude-sonnet-4": (3.0, 15.0),
    "claude-3-5-haiku": (0.8, 4.0),
    "claude-opus-4": (15.0, 75.0),
}


def lookup_price(model: str) -> tuple[float, float] | None:
    """Return ``(input, output)`` per-million prices for *model*, if known."""
    best: str | None = None
    for name in _PRICE_PER_MILLION:
        if model.startswith(name) and (best is None or len(name) > len(best)):
            best = name
    return _PRICE_PER_MILLION[best] if best else None


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Return the USD cost of one call; unknown models cost ``0.0``."""
    price = lookup_price(model)
    if price is None:
        return 0.0
    input_price, output_price = price
    return (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000
