from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import Any, Iterable

import structlog
from fastapi import Request

# Client libraries that log every request at INFO.
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def _quiet(names: Iterable[str], level: int) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def configure_logging(env: str = "development", debug: bool = False) -> None:
    """Route stdlib and structlog output to stdout as console lines.

    ``debug`` lowers the root level to DEBUG and lets the HTTP and database
    client loggers through. Production output carries no ANSI colors.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    _quiet(NOISY_LOGGERS, logging.DEBUG if debug else logging.WARNING)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=env != "production"),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Tag every log line of a request with its id and echo the id back."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    log = structlog.get_logger("mailledger.http")
    started = time.perf_counter()

    with structlog.contextvars.bound_contextvars(request_id=request_id, path=request.url.path):
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request.failed", method=request.method)
            raise
        log.info(
            "request.completed",
            method=request.method,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    response.headers["x-request-id"] = request_id
    return response
