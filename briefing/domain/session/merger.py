from typing import List
import structlog

from briefing.domain.models.briefing_state import MergeReport, Topic
from .registry import ItemRegistry

logger = structlog.get_logger(__name__)


class ProgressiveMerger:
    """Folds late-arriving topics (e.g. a second page of mail) into a live registry

    Merging is strictly additive: items already registered keep their
    (topic_index, item_index), so cursors and history entries stay valid.
    """

    def __init__(self, registry: ItemRegistry):
        self.registry = registry

    def add_topics(self, new_topics: List[Topic]) -> MergeReport:
        """Merge by label into existing topics, append the rest as new topics"""

        report = MergeReport()

        for incoming in new_topics:
            fresh = [ref for ref in incoming.items if ref.id not in self.registry]
            report.duplicate_items += len(incoming.items) - len(fresh)

            topic_index = self.registry.find_topic(incoming.label)
            if topic_index is not None:
                added = self.registry.extend_topic(topic_index, fresh)
                if added:
                    report.merged_topics.append(incoming.label)
            else:
                _, added = self.registry.append_topic(Topic(label=incoming.label, items=fresh))
                report.new_topics.append(incoming.label)

            report.new_items += added

        logger.info(
            "Topics added to tracker",
            new_topic_count=len(report.new_topics),
            merged_topic_count=len(report.merged_topics),
            new_items=report.new_items,
            total_topics=len(self.registry.topics),
            total_items=len(self.registry),
        )
        return report
