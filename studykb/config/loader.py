"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

    1. config/config.yaml  -- static defaults checked into the repo
    2. .env file           -- local developer overrides (not committed)
    3. Environment vars    -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
environment-derived values from :class:`Settings` on top.
"""

from pathlib import Path

import yaml

from studykb.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "llm": {
            "provider": settings.llm_provider,
            "available_providers": settings.get_available_llm_providers(),
        },
        "ocr": {
            "languages": settings.ocr_languages,
            "timeout_seconds": settings.ocr_timeout_seconds,
        },
        "pipeline": {
            "max_concurrent": settings.kb_max_concurrent,
            "embedding_batch_size": settings.embedding_batch_size,
            "pdf_ocr_embedded_images": settings.pdf_ocr_embedded_images,
        },
        "retrieval": {
            "mode": settings.retrieval_mode,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
