"""structlog configuration for studykb.

One processor chain is shared by structlog loggers and by the stdlib
``logging`` bridge; only the final renderer differs.  Console output is
used for development and JSON lines when ``APP_ENV=production`` (or when
``json_output`` is forced), so ingestion events such as
``ingestion_completed`` or ``ocr_image_failed`` can be shipped as-is.

SDK loggers listed in ``_CHATTY_LOGGERS`` are held at WARNING unless the
application itself runs at DEBUG.
"""

import logging
import os
import sys

import structlog

_CHATTY_LOGGERS = ("openai", "anthropic", "httpx", "httpcore", "PIL", "aiosqlite")


def _processor_chain() -> list[structlog.types.Processor]:
    # contextvars first so bound document ids reach every later processor
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Emit JSON regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level_name = log_level.upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level_name, level = "INFO", logging.INFO

    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    shared = _processor_chain()

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger tagged with ``logger_name``; configures defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
