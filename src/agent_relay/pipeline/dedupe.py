"""Collapse concurrent identical requests into one in-flight operation."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from agent_relay.pipeline.errors import DedupeTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedupe_key(session_id: str | None, question: str) -> str:
    raw = f"{session_id or ''}\x00{question}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


class RequestDeduplicator:
    """At most one in-flight operation per key.

    The first caller for a key starts the operation as its own task; later
    callers with the same key await that task instead of starting another.
    The entry is evicted as soon as the task finishes, and the task is bounded
    by ``timeout_s`` so a hung upstream never keeps a key occupied. Callers
    wait through :func:`asyncio.shield`, so a caller that gives up or is
    cancelled does not cancel the shared work for the others.
    """

    def __init__(self, *, timeout_s: float = 60.0) -> None:
        self.timeout_s = timeout_s
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def in_flight(self) -> int:
        return len(self._pending)

    async def run(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.create_task(self._bounded(key, operation), name=f"dedupe:{key[:12]}")
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._evict(key, done))
        else:
            logger.info("dedupe event=joined key=%s", key[:12])
        return await asyncio.shield(task)

    def clear(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    async def _bounded(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout_s)
        except TimeoutError as exc:
            logger.warning("dedupe event=timeout key=%s timeout_s=%s", key[:12], self.timeout_s)
            raise DedupeTimeoutError(
                f"shared request exceeded {self.timeout_s:g}s and was abandoned"
            ) from exc

    def _evict(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # Mark the exception as retrieved when every waiter already left.
            task.exception()
