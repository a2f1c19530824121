from typing import Dict, Iterator, List, Optional, Tuple
import structlog

from briefing.domain.errors import UnknownItemError
from briefing.domain.models.briefing_state import (
    ItemRef, ItemState, ItemStatus, MarkOutcome, PersistedRecord, Topic, utc_now
)
from briefing.domain.engagement.profile import EngagementNotifier
from briefing.infrastructure.persistence.write_queue import PersistenceQueue

logger = structlog.get_logger(__name__)


class ItemRegistry:
    """Owns the topic list and the one lifecycle record of every item

    Topics and their items are only ever appended to, so a
    (topic_index, item_index) pair, once assigned, never changes.
    """

    def __init__(
        self,
        persistence: Optional[PersistenceQueue] = None,
        engagement: Optional[EngagementNotifier] = None,
    ):
        self.topics: List[Topic] = []
        self.persistence = persistence
        self.engagement = engagement
        self._states: Dict[str, ItemState] = {}
        self._refs: Dict[str, ItemRef] = {}
        self._label_index: Dict[str, int] = {}
        self._counts: Dict[ItemStatus, int] = {status: 0 for status in ItemStatus}

    # Registration

    def register(self, topics: List[Topic]) -> int:
        """Register topics as new topics at the end of the list; returns items added"""

        added = 0
        for topic in topics:
            _, count = self.append_topic(topic)
            added += count
        return added

    def append_topic(self, topic: Topic) -> Tuple[int, int]:
        """Append a brand-new topic and register its items"""

        topic_index = len(self.topics)
        self.topics.append(Topic(label=topic.label))
        self._label_index.setdefault(topic.label, topic_index)
        return topic_index, self.extend_topic(topic_index, topic.items)

    def extend_topic(self, topic_index: int, items: List[ItemRef]) -> int:
        """Append items to the end of an existing topic; already-known ids are ignored"""

        topic = self.topics[topic_index]
        added = 0
        for ref in items:
            if ref.id in self._states:
                logger.debug("Ignoring duplicate item", item_id=ref.id, topic=topic.label)
                continue

            topic.items.append(ref)
            self._refs[ref.id] = ref
            self._states[ref.id] = ItemState(
                item_id=ref.id,
                topic_index=topic_index,
                item_index=len(topic.items) - 1,
            )
            self._counts[ItemStatus.PENDING] += 1
            added += 1
        return added

    def find_topic(self, label: str) -> Optional[int]:
        return self._label_index.get(label)

    # Lookup

    def lookup(self, item_id: str) -> Optional[ItemState]:
        """Get the lifecycle record for an item, or None if never registered"""
        return self._states.get(item_id)

    def require(self, item_id: str) -> ItemState:
        state = self._states.get(item_id)
        if state is None:
            raise UnknownItemError(item_id)
        return state

    def get_ref(self, item_id: str) -> Optional[ItemRef]:
        return self._refs.get(item_id)

    def ref_at(self, topic_index: int, item_index: int) -> Optional[ItemRef]:
        if 0 <= topic_index < len(self.topics):
            items = self.topics[topic_index].items
            if 0 <= item_index < len(items):
                return items[item_index]
        return None

    def is_pending(self, ref: ItemRef) -> bool:
        return self._states[ref.id].is_pending

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def states(self) -> Iterator[ItemState]:
        return iter(self._states.values())

    # Mutation

    def mark_briefed(self, item_id: str) -> MarkOutcome:
        """Mark an item as briefed (the user heard it)"""
        return self._transition(item_id, ItemStatus.BRIEFED)

    def mark_actioned(self, item_id: str, action: str) -> MarkOutcome:
        """Mark an item as actioned (archived, flagged, read, ...)"""
        return self._transition(item_id, ItemStatus.ACTIONED, action)

    def mark_skipped(self, item_id: str) -> MarkOutcome:
        """Mark an item as skipped"""
        return self._transition(item_id, ItemStatus.SKIPPED)

    def _transition(self, item_id: str, status: ItemStatus, action: Optional[str] = None) -> MarkOutcome:
        state = self._states.get(item_id)
        if state is None:
            logger.warning("Status change for unknown item", item_id=item_id, status=status.value)
            return MarkOutcome.UNKNOWN_ITEM

        if not state.is_pending:
            logger.warning(
                "Item already handled, ignoring",
                item_id=item_id,
                current=state.status.value,
                requested=status.value,
            )
            return MarkOutcome.ALREADY_TERMINAL

        now = utc_now()
        state.status = status
        if status == ItemStatus.BRIEFED:
            state.briefed_at = now
        elif status == ItemStatus.ACTIONED:
            state.action_taken = action
            state.actioned_at = now
        else:
            state.skipped_at = now

        self._counts[ItemStatus.PENDING] -= 1
        self._counts[status] += 1

        if self.persistence is not None:
            self.persistence.enqueue(item_id, self._record_for(state))

        # a brief with no action counts as a mild skip for the sender
        if self.engagement is not None:
            ref = self._refs[item_id]
            priority = ref.priority.value if ref.priority else None
            self.engagement.observe(ref.sender, action, priority)

        logger.info("Item status changed", item_id=item_id, status=status.value, action=action)
        return MarkOutcome.APPLIED

    # Queries

    def count(self, status: ItemStatus) -> int:
        return self._counts[status]

    def pending_in_topic(self, topic_index: int) -> List[ItemRef]:
        if not 0 <= topic_index < len(self.topics):
            return []
        return [ref for ref in self.topics[topic_index].items if self.is_pending(ref)]

    def handled_records(self) -> Dict[str, PersistedRecord]:
        """Project every non-pending item to its durable record"""

        return {
            item_id: self._record_for(state)
            for item_id, state in self._states.items()
            if not state.is_pending
        }

    @staticmethod
    def _record_for(state: ItemState) -> PersistedRecord:
        return PersistedRecord(status=state.status, action=state.action_taken)
