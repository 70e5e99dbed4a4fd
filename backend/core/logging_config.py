"""Logging setup.

Every record, whether emitted through ``logging.getLogger`` or
``structlog.get_logger``, goes through the same structlog processor chain
and is rendered once by the root handler. Console output in development,
one JSON object per line otherwise.

Request and run identifiers are carried in structlog context variables,
so log lines emitted deep inside a behavior still show which request and
which workflow run they belong to.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from app.config import get_settings

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite")


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(settings):
    if settings.is_development or settings.LOG_FORMAT == "text":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging() -> None:
    """Route stdlib and structlog loggers through one stdout handler."""
    settings = get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings),
        ],
        foreign_pre_chain=pre_chain,
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.getLevelName(settings.LOG_LEVEL.upper()))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQLALCHEMY_ECHO else logging.WARNING
    )


@contextmanager
def run_log_context(
    run_id: str,
    workflow_id: Optional[str] = None,
    dry_run: bool = False,
) -> Iterator[None]:
    """Tag every log line emitted inside the block with the run it belongs to."""
    with structlog.contextvars.bound_contextvars(
        run_id=run_id, workflow_id=workflow_id, dry_run=dry_run
    ):
        yield
