"""Single-flight deduplication of in-flight requests.

:class:`RequestDeduplicator` collapses concurrent calls that share a
deduplication key into one underlying coroutine. The first caller starts the
work as an :class:`asyncio.Task`; every caller that arrives while that task
is registered awaits the same task and receives the same result or the same
exception. The result is the very same object for every joiner; copy it
before mutating it.

Mutating calls can ask for the registry entry to outlive the task by a short
``release_delay`` after a successful settle, so that an accidental rapid
double submit is answered by the original call instead of firing twice.
Failed calls are always unregistered immediately so the next call retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestDeduplicator:
    """Registry of in-flight tasks keyed by request signature.

    All mutations happen synchronously between ``await`` points on a single
    event loop, so no lock is required.

    Example::

        dedup = RequestDeduplicator()
        a, b = await asyncio.gather(
            dedup.dedupe("GET /slow", fetch_slow),
            dedup.dedupe("GET /slow", fetch_slow),
        )
        # fetch_slow ran once; a == b
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    async def dedupe(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        release_delay: float = 0.0,
    ) -> T:
        """Await the task registered under *key*, starting it via *factory* if absent.

        Args:
            key: Deterministic request signature.
            factory: Zero-argument callable returning the awaitable to run.
                Only invoked when no task is registered under *key*.
            release_delay: Seconds to keep a successfully settled task
                registered before removal.

        Returns:
            The shared task's result.

        Raises:
            Exception: Whatever the shared task raised, re-raised to every
                caller awaiting it.
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(
                lambda done: self._on_settled(key, done, release_delay)
            )
        else:
            logger.debug("Joining in-flight request %s", key)
        # Shield so one caller's cancellation never cancels the shared call.
        return await asyncio.shield(task)

    def is_in_flight(self, key: str) -> bool:
        """Return ``True`` if a task is currently registered under *key*."""
        return key in self._in_flight

    def keys(self) -> list[str]:
        return sorted(self._in_flight)

    def clear(self) -> None:
        """Forget every registered task. Running tasks are left to finish."""
        self._in_flight.clear()

    def __len__(self) -> int:
        return len(self._in_flight)

    def _on_settled(self, key: str, task: asyncio.Task[Any], release_delay: float) -> None:
        failed = task.cancelled() or task.exception() is not None
        if failed or release_delay <= 0:
            self._release(key, task)
            return
        asyncio.get_running_loop().call_later(release_delay, self._release, key, task)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
