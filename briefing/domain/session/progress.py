from typing import List

from briefing.domain.models.briefing_state import ItemRef, ItemPriority, ItemStatus, ProgressSnapshot
from .navigation import NavigationEngine
from .registry import ItemRegistry


COMPLETE_LABEL = "Complete"


def _markers(ref: ItemRef) -> str:
    flag = " [FLAGGED]" if ref.is_flagged else ""
    priority = f" [{ref.priority.value.upper()}]" if ref.priority else ""
    return f"{flag}{priority}"


class ProgressReporter:
    """Renders registry + cursor state for the reasoning component's prompt"""

    def __init__(self, registry: ItemRegistry, navigator: NavigationEngine):
        self.registry = registry
        self.navigator = navigator

    def get_progress(self) -> ProgressSnapshot:
        cursor = self.navigator.cursor
        topics = self.registry.topics
        label = topics[cursor.topic_index].label if cursor.topic_index < len(topics) else COMPLETE_LABEL

        return ProgressSnapshot(
            current_topic_index=cursor.topic_index,
            current_item_index=cursor.item_index,
            current_item=self.navigator.current_item(),
            current_topic_label=label,
            total_topics=len(topics),
            total_items=len(self.registry),
            briefed=self.registry.count(ItemStatus.BRIEFED),
            actioned=self.registry.count(ItemStatus.ACTIONED),
            skipped=self.registry.count(ItemStatus.SKIPPED),
            remaining=self.registry.count(ItemStatus.PENDING),
            paused=self.navigator.paused,
        )

    def build_cursor_context(self) -> str:
        """Directive block naming the exact current item and what to do next"""

        progress = self.get_progress()
        current = progress.current_item

        if current is None:
            return "\n".join([
                "CURRENT BRIEFING POSITION:",
                "Briefing complete. All items have been covered.",
                f"Summary: {progress.briefed} briefed, {progress.actioned} actioned, "
                f"{progress.skipped} skipped.",
                "",
                "NEXT: Summarize the briefing session and ask if the user needs anything else.",
            ])

        topic = self.registry.topics[progress.current_topic_index]
        active_in_topic = len(self.registry.pending_in_topic(progress.current_topic_index))

        lines = [
            "CURRENT BRIEFING POSITION:",
            f'Topic {progress.current_topic_index + 1} of {progress.total_topics}: "{topic.label}"',
            f"Item {progress.current_item_index + 1} of {len(topic.items)} in this topic "
            f"({active_in_topic} remaining)",
            f'Current item: "{current.subject}" from {current.sender}{_markers(current)} '
            f"(item_id: {current.id})",
        ]
        if current.summary:
            lines.append(f"Summary: {current.summary}")
        lines.append(
            f"Progress: {progress.handled} of {progress.total_items} handled, "
            f"{progress.remaining} remaining"
        )
        lines.append("")

        if progress.paused:
            lines.append("Briefing is PAUSED.")
            lines.append("NEXT: Wait for the user to resume. Do not present new items.")
        elif current.summary:
            lines.append(
                "NEXT: Read the summary to the user naturally (do NOT read verbatim). "
                "Then ask what action to take."
            )
        else:
            lines.append(
                "NEXT: Present THIS item to the user. Summarize its subject and sender, "
                "then ask what action to take."
            )

        return "\n".join(lines)

    def build_compact_reference(self) -> str:
        """Pending items only; current topic in full, others collapsed to counts"""

        current_topic = self.navigator.cursor.topic_index
        lines: List[str] = ["REMAINING ITEMS (active, not yet briefed):"]
        has_items = False

        for topic_index, topic in enumerate(self.registry.topics):
            active = self.registry.pending_in_topic(topic_index)
            if not active:
                continue
            has_items = True

            if topic_index == current_topic:
                lines.append(f'\nCURRENT TOPIC: "{topic.label}" ({len(active)} items)')
                for ref in active:
                    summary = f' | "{ref.summary}"' if ref.summary else ""
                    lines.append(
                        f'  - item_id: "{ref.id}" | From: {ref.sender} | '
                        f"Subject: {ref.subject}{_markers(ref)}{summary}"
                    )
            else:
                high = sum(1 for ref in active if ref.priority == ItemPriority.HIGH)
                high_label = f", {high} high-priority" if high else ""
                lines.append(f'\n  - "{topic.label}" ({len(active)} items{high_label})')

        if not has_items:
            lines.append("\n(All items have been briefed or actioned)")

        return "\n".join(lines)
