"""Deterministic content fingerprints used as cache keys."""

from __future__ import annotations

import hashlib


def content_hash(text: str) -> str:
    """Return the SHA-256 hex digest of *text* encoded as UTF-8.

    Byte-identical input always yields the same digest, which makes the
    result safe to use as a memoization key for expensive AI calls.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def namespaced_key(namespace: str, text: str) -> str:
    """Return ``"<namespace>:<digest>"`` so caches can be shared safely."""
    return f"{namespace}:{content_hash(text)}"
