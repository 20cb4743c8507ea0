# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Both structlog loggers and plain ``logging.getLogger(__name__)`` loggers are
rendered through one structlog ProcessorFormatter, so interaction-scoped
fields attached with bind_context() (session_id, interaction_id, epoch)
appear on every line emitted while a submission is processed, whichever
API emitted it. Output is JSON in production and colored console text in
development.

Learner submissions and model output can be long and personal; fields that
carry them, including stdlib ``extra`` fields, are cut down to a short
preview before rendering.

Example:
    >>> from instructorflow.utils.logging import setup_logging, get_logger
    >>> from instructorflow.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("interaction_admitted", session_id="s-1", epoch=3)
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from instructorflow.core.config.settings import Settings

HANDLER_NAME = "instructorflow"

TEXT_FIELDS = ("input_text", "response", "result_text", "draft")
TEXT_PREVIEW_CHARS = 80


def truncate_learner_text(_: Any, __: str, event_dict: EventDict) -> EventDict:
    """Shorten free-text fields to a preview with their original length."""
    for key in TEXT_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > TEXT_PREVIEW_CHARS:
            event_dict[key] = f"{value[:TEXT_PREVIEW_CHARS]}... ({len(value)} chars)"
    return event_dict


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Safe to call more than once; the previously installed handler is
    replaced rather than duplicated.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ExtraAdder(),
        truncate_learner_text,
    ]

    renderer: Processor
    if settings.is_development or settings.debug:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
        final_processors: list[Processor] = [renderer]
    else:
        renderer = structlog.processors.JSONRenderer()
        final_processors = [structlog.processors.format_exc_info, renderer]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *final_processors,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if h.get_name() != HANDLER_NAME]
    root.addHandler(handler)
    root.setLevel(log_level)

    # Provider SDKs are chatty at INFO
    for logger_name in [
        "LiteLLM",
        "litellm",
        "httpx",
        "httpcore",
        "sqlalchemy",
        "aiosqlite",
        "asyncio",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("instructorflow").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Example:
        >>> bind_context(session_id="s-1", interaction_id="i-9")
        >>> logger.info("generation_started")  # includes both ids
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Called when an interaction pipeline finishes so fields do not leak into
    unrelated work scheduled on the same task.
    """
    structlog.contextvars.clear_contextvars()
