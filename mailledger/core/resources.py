"""
Process-wide shared handles.

A SharedHandle wraps an async factory so that the handle is created lazily on
first use and exactly once, even when several coroutines ask for it at the
same time. Callers that arrive while creation is in flight await the same
attempt. A failed attempt is forgotten so the next caller retries.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SharedHandle(Generic[T]):
    """Lazily created, single-flight, reusable handle."""

    def __init__(
        self,
        name: str,
        factory: Callable[[], Awaitable[T]],
        closer: Optional[Callable[[T], Awaitable[None]]] = None,
    ):
        self.name = name
        self._factory = factory
        self._closer = closer
        self._value: Optional[T] = None
        self._pending: Optional[asyncio.Task] = None
        self.init_count = 0

    @property
    def ready(self) -> bool:
        return self._value is not None

    async def acquire(self) -> T:
        """Return the shared handle, creating it on first use."""
        if self._value is not None:
            return self._value

        if self._pending is None:
            logger.debug("shared_handle.initializing", handle=self.name)
            self._pending = asyncio.ensure_future(self._create())

        pending = self._pending
        try:
            # shield: a cancelled waiter must not cancel the shared attempt
            return await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise

    async def _create(self) -> T:
        self.init_count += 1
        value = await self._factory()
        self._value = value
        logger.info("shared_handle.ready", handle=self.name)
        return value

    async def close(self) -> None:
        """Release the handle. The next acquire() creates a fresh one."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except (asyncio.CancelledError, Exception):
                pass
        self._pending = None

        value, self._value = self._value, None
        if value is not None and self._closer is not None:
            try:
                await self._closer(value)
            except Exception as exc:
                logger.warning(
                    "shared_handle.close_failed", handle=self.name, error=str(exc)
                )
        logger.debug("shared_handle.closed", handle=self.name)
