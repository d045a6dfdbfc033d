"""
Structured logging configuration using structlog.

The alert core logs through plain ``logging.getLogger(__name__)``
loggers while the feed consumer and the CLI use structlog. Both end up
in a single root handler whose ``ProcessorFormatter`` renders JSON in
production and a console layout elsewhere, with any bound context
variables merged into every line.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from alertflow.config.settings import Settings, get_settings

HANDLER_NAME = "alertflow"


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the root logging handler.

    Safe to call more than once: the previous alertflow handler is
    replaced rather than stacked.
    """
    settings = settings or get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    render_chain: list[Processor] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if settings.is_production:
        render_chain += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=[
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
            processors=render_chain,
        )
    )

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level))

    # Noisy libraries
    for name in ("httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """
    Bind context variables to all subsequent log lines in this task.

    Tasks spawned afterwards inherit the binding, so the feed consumer's
    ``component`` tag also shows up on notifier lane logs.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
