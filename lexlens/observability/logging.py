"""
Structured logging for the clause worker using structlog.
JSON lines in production, coloured console when DEBUG is set.
Job identifiers bound with job_log_context() appear on every event of a run.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from lexlens.config import settings

# Library loggers that drown out pipeline events at INFO
NOISY_LOGGERS = ("pdfminer", "pdfplumber", "sentence_transformers", "urllib3", "filelock")


def setup_logging(level: Optional[str] = None) -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        # Records from rq, sqlalchemy etc. get the same fields as our own events
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(),
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level or settings.LOG_LEVEL))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )


@contextmanager
def job_log_context(**ids: Optional[str]) -> Iterator[None]:
    """Bind doc_id/job_id style identifiers for the duration of one job."""
    bound = {key: value for key, value in ids.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def _renderer():
    if settings.DEBUG:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)
