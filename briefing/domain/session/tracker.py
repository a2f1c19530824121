from typing import Dict, List, Optional, Union
import structlog

from briefing.domain.models.briefing_state import (
    Cursor, ItemRef, ItemState, MarkOutcome, MergeReport, NavigationOutcome,
    PersistedRecord, ProgressSnapshot, Topic
)
from briefing.domain.engagement.profile import EngagementNotifier, EngagementProfile
from briefing.infrastructure.persistence.briefed_item_store import BriefedItemStore
from briefing.infrastructure.persistence.write_queue import PersistenceQueue
from .merger import ProgressiveMerger
from .navigation import NavigationEngine
from .progress import ProgressReporter
from .registry import ItemRegistry

logger = structlog.get_logger(__name__)


class BriefingSessionTracker:
    """Tracks every item's lifecycle and the narration cursor for one session"""

    def __init__(
        self,
        topics: List[Topic],
        store: Optional[BriefedItemStore] = None,
        user_id: Optional[str] = None,
        engagement: Optional[EngagementProfile] = None,
    ):
        self.user_id = user_id
        self.persistence = PersistenceQueue(store, user_id) if store and user_id else None
        notifier = EngagementNotifier(engagement, user_id) if engagement and user_id else None
        self.engagement = notifier

        self.registry = ItemRegistry(persistence=self.persistence, engagement=notifier)
        self.registry.register(topics)
        self.navigator = NavigationEngine(self.registry)
        self.merger = ProgressiveMerger(self.registry)
        self.reporter = ProgressReporter(self.registry, self.navigator)

        logger.info(
            "Briefing session tracker initialized",
            user_id=user_id,
            topic_count=len(self.registry.topics),
            total_items=len(self.registry),
            topic_sizes=[len(topic.items) for topic in self.registry.topics],
        )

    @property
    def topics(self) -> List[Topic]:
        return self.registry.topics

    @property
    def history(self) -> List[Cursor]:
        return list(self.navigator.history)

    @property
    def paused(self) -> bool:
        return self.navigator.paused

    @property
    def stopped(self) -> bool:
        return self.navigator.stopped

    def get_cursor(self) -> Cursor:
        return self.navigator.cursor

    def get_current_item(self) -> Optional[ItemRef]:
        return self.navigator.current_item()

    def lookup(self, item_id: str) -> Optional[ItemState]:
        return self.registry.lookup(item_id)

    # Navigation

    def advance(self) -> NavigationOutcome:
        return self.navigator.advance()

    def skip_topic(self) -> NavigationOutcome:
        return self.navigator.skip_topic()

    def go_back(self, steps: Union[int, str] = 1) -> NavigationOutcome:
        return self.navigator.go_back(steps)

    def pause(self) -> NavigationOutcome:
        return self.navigator.pause()

    def resume(self) -> NavigationOutcome:
        return self.navigator.resume()

    def stop(self) -> NavigationOutcome:
        return self.navigator.stop()

    # Progressive loading

    def add_topics(self, new_topics: List[Topic]) -> MergeReport:
        """Merge late-arriving topics without moving anything already registered"""

        was_complete = self.navigator.is_complete
        report = self.merger.add_topics(new_topics)

        if was_complete:
            self.navigator.reopen()
        return report

    # Status updates

    def mark_briefed(self, item_id: str) -> MarkOutcome:
        return self.registry.mark_briefed(item_id)

    def mark_actioned(self, item_id: str, action: str) -> MarkOutcome:
        return self.registry.mark_actioned(item_id, action)

    def mark_skipped(self, item_id: str) -> MarkOutcome:
        return self.registry.mark_skipped(item_id)

    # Queries

    def get_progress(self) -> ProgressSnapshot:
        return self.reporter.get_progress()

    def build_cursor_context(self) -> str:
        return self.reporter.build_cursor_context()

    def build_compact_reference(self) -> str:
        return self.reporter.build_compact_reference()

    def is_complete(self) -> bool:
        """True when no pending item is left anywhere"""
        return self.get_progress().remaining == 0

    def get_handled_records(self) -> Dict[str, PersistedRecord]:
        return self.registry.handled_records()

    async def flush(self) -> int:
        """Batch-write every handled item; callers await this before assuming durability"""

        if self.engagement is not None:
            await self.engagement.drain()

        if self.persistence is None:
            return 0

        return await self.persistence.flush(self.get_handled_records())
