from typing import Dict, Any, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum
import time


class ItemStatus(str, Enum):
    """Lifecycle status of a briefing item"""
    PENDING = "pending"
    BRIEFED = "briefed"
    ACTIONED = "actioned"
    SKIPPED = "skipped"


class ItemPriority(str, Enum):
    """Priority assigned upstream to an item"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MarkOutcome(str, Enum):
    """Result of a status mutation request"""
    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"
    UNKNOWN_ITEM = "unknown_item"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class ItemRef(BaseModel):
    """Immutable reference to an item supplied by the data source"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Item identifier (e.g. provider message id)")
    subject: str = Field(description="Subject line")
    sender: str = Field(description="Display name or address of the sender")
    priority: Optional[ItemPriority] = Field(None, description="Upstream priority")
    is_flagged: bool = Field(default=False, alias="isFlagged")
    summary: Optional[str] = Field(None, description="Precomputed spoken summary")


class Topic(BaseModel):
    """Named, ordered group of items narrated together"""
    label: str
    items: List[ItemRef] = Field(default_factory=list)


class ItemState(BaseModel):
    """Mutable lifecycle record, one per registered item"""
    item_id: str
    topic_index: int
    item_index: int
    status: ItemStatus = Field(default=ItemStatus.PENDING)
    action_taken: Optional[str] = None
    briefed_at: Optional[datetime] = None
    actioned_at: Optional[datetime] = None
    skipped_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ItemStatus.PENDING


class Cursor(BaseModel):
    """Position of the item currently being narrated"""
    model_config = ConfigDict(frozen=True)

    topic_index: int = 0
    item_index: int = 0

    def as_tuple(self) -> Tuple[int, int]:
        return (self.topic_index, self.item_index)


class PersistedRecord(BaseModel):
    """Durable projection of an ItemState"""
    status: ItemStatus
    action: Optional[str] = None
    timestamp: int = Field(default_factory=epoch_millis, description="Epoch milliseconds")

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_json(cls, raw: str) -> "PersistedRecord":
        return cls.model_validate_json(raw)


class StatusChange(BaseModel):
    """A status transition caused by a navigation call"""
    item_id: str
    status: ItemStatus


class NavigationOutcome(BaseModel):
    """Result of one navigation transition"""
    success: bool
    message: str = ""
    cursor: Cursor
    item: Optional[ItemRef] = None
    complete: bool = False
    status_changes: List[StatusChange] = Field(default_factory=list)


class MergeReport(BaseModel):
    """Summary of a progressive merge"""
    new_topics: List[str] = Field(default_factory=list)
    merged_topics: List[str] = Field(default_factory=list)
    new_items: int = 0
    duplicate_items: int = 0


class ProgressSnapshot(BaseModel):
    """What the session looks like right now"""
    current_topic_index: int
    current_item_index: int
    current_item: Optional[ItemRef] = None
    current_topic_label: str
    total_topics: int
    total_items: int
    briefed: int = 0
    actioned: int = 0
    skipped: int = 0
    remaining: int = 0
    paused: bool = False

    @property
    def handled(self) -> int:
        return self.briefed + self.actioned + self.skipped

    def get_summary(self) -> Dict[str, Any]:
        """Get a compact dict view of the snapshot"""
        return {
            "topic": self.current_topic_label,
            "position": [self.current_topic_index, self.current_item_index],
            "current_item_id": self.current_item.id if self.current_item else None,
            "briefed": self.briefed,
            "actioned": self.actioned,
            "skipped": self.skipped,
            "remaining": self.remaining,
            "paused": self.paused,
        }
