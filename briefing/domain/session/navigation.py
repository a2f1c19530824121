from typing import List, Optional, Union
import structlog

from briefing.domain.errors import InvalidNavigationError
from briefing.domain.models.briefing_state import (
    Cursor, ItemRef, ItemStatus, MarkOutcome, NavigationOutcome, StatusChange
)
from .registry import ItemRegistry

logger = structlog.get_logger(__name__)

TOPIC_START = "topic_start"

COMPLETE_MESSAGE = "That's the last item. Your briefing is complete."
STOPPED_MESSAGE = "The briefing has been stopped."


class NavigationEngine:
    """Cursor, history and the transitions that move them

    Forward moves push the previous cursor on the history stack; going back
    pops it. Only forward moves change item status.
    """

    def __init__(self, registry: ItemRegistry):
        self.registry = registry
        self.cursor = Cursor()
        self.history: List[Cursor] = []
        self.paused = False
        self.stopped = False
        self.settle()

    # Position

    @property
    def complete_cursor(self) -> Cursor:
        return Cursor(topic_index=len(self.registry.topics), item_index=0)

    @property
    def is_complete(self) -> bool:
        return self.cursor.topic_index >= len(self.registry.topics)

    @property
    def max_history(self) -> int:
        return max(len(self.registry), 1)

    def current_item(self) -> Optional[ItemRef]:
        return self.registry.ref_at(self.cursor.topic_index, self.cursor.item_index)

    def settle(self) -> None:
        """Park the cursor on the first pending item at or after its position"""

        current = self.current_item()
        if current is not None and self.registry.is_pending(current):
            return
        self.cursor = self._scan_from(self.cursor.topic_index, self.cursor.item_index)

    def reopen(self) -> None:
        """Re-place the cursor after a merge into a completed briefing

        Scans from the start so the earliest pending item is found wherever
        the merge put it. The old sentinel may now index a merged topic.
        """

        self.cursor = self._scan_from(0, 0)
        logger.info("Briefing reopened", cursor=self.cursor.as_tuple(), complete=self.is_complete)

    def _scan_from(self, topic_index: int, item_index: int) -> Cursor:
        """Lowest pending (topic, item) at or after the given position"""

        topics = self.registry.topics
        while topic_index < len(topics):
            items = topics[topic_index].items
            while item_index < len(items):
                if self.registry.is_pending(items[item_index]):
                    return Cursor(topic_index=topic_index, item_index=item_index)
                item_index += 1
            topic_index += 1
            item_index = 0

        return self.complete_cursor

    def _push_history(self) -> None:
        self.history.append(self.cursor)
        if len(self.history) > self.max_history:
            del self.history[0]

    def _outcome(self, message: str = "", changes: List[StatusChange] = None) -> NavigationOutcome:
        item = self.current_item()
        complete = self.is_complete
        return NavigationOutcome(
            success=True,
            message=message,
            cursor=self.cursor,
            item=item,
            complete=complete,
            status_changes=changes or [],
        )

    def _failure(self, error: InvalidNavigationError) -> NavigationOutcome:
        logger.info("Navigation rejected", reason=error.message, cursor=self.cursor.as_tuple())
        return NavigationOutcome(
            success=False,
            message=error.message,
            cursor=self.cursor,
            item=self.current_item(),
            complete=self.is_complete,
        )

    def _guard_running(self) -> None:
        if self.stopped:
            raise InvalidNavigationError(STOPPED_MESSAGE)

    # Transitions

    def advance(self) -> NavigationOutcome:
        """Mark the current item briefed and move to the next pending item"""

        try:
            self._guard_running()
        except InvalidNavigationError as e:
            return self._failure(e)

        if self.is_complete:
            return self._outcome(COMPLETE_MESSAGE)

        changes = []
        current = self.current_item()
        if current is not None and self.registry.is_pending(current):
            if self.registry.mark_briefed(current.id) == MarkOutcome.APPLIED:
                changes.append(StatusChange(item_id=current.id, status=ItemStatus.BRIEFED))

        previous = self.cursor
        self._push_history()
        self.cursor = self._scan_from(previous.topic_index, previous.item_index + 1)

        logger.info("Cursor advanced", previous=previous.as_tuple(), cursor=self.cursor.as_tuple())
        message = COMPLETE_MESSAGE if self.is_complete else "Moving on."
        return self._outcome(message, changes)

    def skip_topic(self) -> NavigationOutcome:
        """Skip every pending item of the current topic and move to the next topic"""

        try:
            self._guard_running()
        except InvalidNavigationError as e:
            return self._failure(e)

        if self.is_complete:
            return self._outcome(COMPLETE_MESSAGE)

        changes = []
        for ref in self.registry.pending_in_topic(self.cursor.topic_index):
            if self.registry.mark_skipped(ref.id) == MarkOutcome.APPLIED:
                changes.append(StatusChange(item_id=ref.id, status=ItemStatus.SKIPPED))

        previous = self.cursor
        self._push_history()
        self.cursor = self._scan_from(previous.topic_index + 1, 0)

        logger.info(
            "Topic skipped",
            topic=self.registry.topics[previous.topic_index].label,
            skipped=len(changes),
            cursor=self.cursor.as_tuple(),
        )
        message = COMPLETE_MESSAGE if self.is_complete else "Skipping to the next topic."
        return self._outcome(message, changes)

    def go_back(self, steps: Union[int, str] = 1) -> NavigationOutcome:
        """Restore an earlier cursor; statuses are left untouched"""

        try:
            self._guard_running()
            target_depth = self._back_depth(steps)
        except InvalidNavigationError as e:
            return self._failure(e)

        previous = self.cursor
        restored = self.history[-target_depth]
        del self.history[-target_depth:]
        self.cursor = restored

        logger.info("Cursor moved back", previous=previous.as_tuple(), cursor=self.cursor.as_tuple())
        if steps == TOPIC_START:
            return self._outcome("Going back to the start of this topic.")
        if target_depth == 1:
            return self._outcome("Going back.")
        return self._outcome(f"Going back {target_depth} items.")

    def _back_depth(self, steps: Union[int, str]) -> int:
        if not self.history:
            raise InvalidNavigationError("There's nothing to go back to yet.")

        if steps == TOPIC_START:
            depth = 0
            for entry in reversed(self.history):
                if entry.topic_index != self.cursor.topic_index:
                    break
                depth += 1
            if depth == 0:
                raise InvalidNavigationError("You're already at the start of this topic.")
            return depth

        if not isinstance(steps, int) or steps < 1:
            raise InvalidNavigationError(f"Can't go back {steps} steps.")
        if steps > len(self.history):
            raise InvalidNavigationError(
                f"Can't go back {steps} steps. You've only covered {len(self.history)} items."
            )
        return steps

    def pause(self) -> NavigationOutcome:
        try:
            self._guard_running()
            if self.paused:
                raise InvalidNavigationError("The briefing is already paused.")
        except InvalidNavigationError as e:
            return self._failure(e)

        self.paused = True
        return self._outcome("Pausing the briefing. Just say \"resume\" when you're ready.")

    def resume(self) -> NavigationOutcome:
        try:
            self._guard_running()
            if not self.paused:
                raise InvalidNavigationError("The briefing is not paused.")
        except InvalidNavigationError as e:
            return self._failure(e)

        self.paused = False
        return self._outcome("Resuming the briefing.")

    def stop(self) -> NavigationOutcome:
        """End forward dispatch; registry state is left as is"""

        if self.stopped:
            return self._outcome(STOPPED_MESSAGE)

        self.stopped = True
        self.paused = False
        remaining = self.registry.count(ItemStatus.PENDING)
        if remaining > 0:
            message = f"Stopping the briefing. You have {remaining} items remaining."
        else:
            message = "That's your briefing complete."
        return self._outcome(message)
