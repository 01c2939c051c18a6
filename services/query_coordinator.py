"""
Debounced, last-query-wins execution of search-as-you-type.

Every submitted query gets a generation number. A result is published only
if its generation is still the newest when it arrives, so a slow response to
an old query can never overwrite the answer to a newer one. Superseded
tasks are also cancelled, but correctness rests on the generation check.
"""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar
import structlog

from config import settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEBOUNCE_SECONDS = settings.search_debounce_ms / 1000


class QueryCoordinator(Generic[T]):
    """
    Runs at most one meaningful resolution at a time.

    Usage:
        coordinator = QueryCoordinator(search_service.resolve)
        coordinator.submit("ac")
        coordinator.submit("acme")      # supersedes "ac"
        results = await coordinator.wait()
    """

    def __init__(
        self,
        resolver: Callable[[str], Awaitable[T]],
        debounce_seconds: float = DEBOUNCE_SECONDS,
        cancel_superseded: bool = True,
    ):
        self._resolver = resolver
        self.debounce_seconds = debounce_seconds
        self.cancel_superseded = cancel_superseded
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

        self.latest: Optional[T] = None
        self.latest_query: Optional[str] = None
        self.published_generation = 0

    @property
    def generation(self) -> int:
        """Generation of the most recently submitted query."""
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def submit(self, query: str) -> asyncio.Task:
        """
        Schedule a query, superseding any earlier one.

        Must be called from a running event loop.
        """
        self._generation += 1
        generation = self._generation

        if self.cancel_superseded and self._task is not None and not self._task.done():
            self._task.cancel()

        self._task = asyncio.create_task(self._run(query, generation))
        return self._task

    async def _run(self, query: str, generation: int) -> Optional[T]:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)

        if not self.is_current(generation):
            logger.debug("query_superseded_during_debounce", query=query, generation=generation)
            return None

        result = await self._resolver(query)

        if not self.is_current(generation):
            logger.debug(
                "stale_result_discarded",
                query=query,
                generation=generation,
                current=self._generation
            )
            return None

        self.latest = result
        self.latest_query = query
        self.published_generation = generation
        return result

    async def wait(self) -> Optional[T]:
        """Wait for the newest submitted query and return the published result."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return self.latest
