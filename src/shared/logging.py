from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
]


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def _configure_access_log(level: int, stream: TextIO) -> None:
    # uvicorn attaches its access handler before startup; only restyle it
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    access_logger = logging.getLogger("uvicorn.access")
    handlers = access_logger.handlers or [logging.StreamHandler(stream)]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        if handler not in access_logger.handlers:
            access_logger.addHandler(handler)
    access_logger.setLevel(level)


def setup_logging(
    level: str | int = "INFO",
    *,
    service: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route structlog events through stdlib logging as JSON lines.

    Events go to ``stream`` (stdout by default); commands that print results
    on stdout pass stderr. When ``service`` is given it is bound into the
    context so every event from this process carries it.
    """

    logging_level = _coerce_level(level)
    stream = stream or sys.stdout
    logging.basicConfig(format="%(message)s", stream=stream, level=logging_level)
    _configure_access_log(logging_level, stream)

    structlog.configure(
        processors=list(_PROCESSORS),
        wrapper_class=structlog.make_filtering_bound_logger(logging_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    if service:
        structlog.contextvars.bind_contextvars(service=service)


def get_logger(name: str):
    # lazy: resolves against whatever configuration is current at first use
    return structlog.get_logger(name, component=name)


__all__ = ["setup_logging", "get_logger"]
