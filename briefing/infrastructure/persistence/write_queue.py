from typing import Awaitable, Callable, Deque, Dict, Set
from collections import deque
import asyncio
import structlog

from briefing.domain.models.briefing_state import PersistedRecord
from .briefed_item_store import BriefedItemStore

logger = structlog.get_logger(__name__)

TaskFactory = Callable[[], Awaitable[None]]


class BackgroundTaskQueue:
    """Fire-and-forget coroutine runner with an awaitable drain"""

    def __init__(self, name: str):
        self.name = name
        self._in_flight: Set[asyncio.Task] = set()
        self._deferred: Deque[TaskFactory] = deque()

    def submit(self, factory: TaskFactory) -> None:
        """Schedule a coroutine factory on the running loop

        Without a running loop the factory is kept until the next drain().
        """

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.append(factory)
            return

        task = loop.create_task(self._run(factory))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, factory: TaskFactory) -> None:
        try:
            await factory()
        except Exception as e:
            logger.warning("Background task failed", queue=self.name, error=str(e))

    @property
    def pending(self) -> int:
        return len(self._in_flight) + len(self._deferred)

    async def drain(self) -> None:
        """Run deferred work and wait for everything in flight"""

        while self._deferred:
            await self._run(self._deferred.popleft())

        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)


class PersistenceQueue:
    """Incremental per-item writes plus the end-of-session batch flush"""

    def __init__(self, store: BriefedItemStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self.writes_enqueued = 0
        self._tasks = BackgroundTaskQueue("persistence")

    def enqueue(self, item_id: str, record: PersistedRecord) -> None:
        """Queue a best-effort write; never raises"""

        self.writes_enqueued += 1
        self._tasks.submit(lambda: self.store.write(self.user_id, item_id, record))

    @property
    def pending_writes(self) -> int:
        return self._tasks.pending

    async def flush(self, records: Dict[str, PersistedRecord]) -> int:
        """Wait for in-flight writes, then write every handled record in one batch"""

        await self._tasks.drain()

        if not records:
            return 0

        await self.store.write_batch(self.user_id, records)

        logger.info(
            "Flushed briefing state to store",
            user_id=self.user_id,
            total_flushed=len(records),
        )
        return len(records)
