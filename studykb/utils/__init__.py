"""Utility modules for studykb.

- **errors** -- exception hierarchy rooted at KnowledgeBaseError.
- **logging** -- structlog setup with the dual console/JSON renderer.
- **hashing** -- SHA-256 content fingerprints for cache keys.
- **tokens** -- tiktoken-based token counting with a ceil(len/4) fallback.
"""
