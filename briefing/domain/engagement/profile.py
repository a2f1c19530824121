from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
import hashlib
import json

import redis.asyncio as redis
import structlog

from briefing.infrastructure.persistence.write_queue import BackgroundTaskQueue

logger = structlog.get_logger(__name__)

PROFILE_KEY_PREFIX = "nexus:sender"
PROFILE_TTL_SECONDS = 90 * 24 * 60 * 60


class ProfileAction(str, Enum):
    """Engagement signal recorded per sender"""
    ARCHIVED = "archived"
    FLAGGED = "flagged"
    REPLIED = "replied"
    DEEPER_VIEWED = "deeperViewed"
    MARK_READ = "markRead"
    SKIPPED = "skipped"


ACTION_TO_PROFILE: Dict[str, ProfileAction] = {
    "archive_email": ProfileAction.ARCHIVED,
    "mark_read": ProfileAction.MARK_READ,
    "flag_followup": ProfileAction.FLAGGED,
    "flagged": ProfileAction.FLAGGED,
    "create_draft": ProfileAction.REPLIED,
    "mute_sender": ProfileAction.ARCHIVED,
    "go_deeper": ProfileAction.DEEPER_VIEWED,
}


def map_action(action: Optional[str]) -> ProfileAction:
    """Map a tool action name to an engagement signal"""
    return ACTION_TO_PROFILE.get(action or "", ProfileAction.SKIPPED)


class EngagementProfile(ABC):
    """Best-effort personalization collaborator that observes actions"""

    @abstractmethod
    async def record_action(
        self,
        user_id: str,
        sender: str,
        action: ProfileAction,
        priority: Optional[str] = None,
    ) -> None:
        """Record one observed action for a sender"""
        pass


class RedisEngagementProfile(EngagementProfile):
    """Per-sender engagement counters stored as JSON in Redis"""

    def __init__(self, client: redis.Redis, ttl_seconds: int = PROFILE_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisEngagementProfile":
        return cls(redis.from_url(redis_url, decode_responses=True))

    def key(self, user_id: str, sender: str) -> str:
        digest = hashlib.sha256(sender.lower().encode("utf-8")).hexdigest()[:16]
        return f"{PROFILE_KEY_PREFIX}:{user_id}:{digest}"

    async def get_profile(self, user_id: str, sender: str) -> Optional[Dict[str, Any]]:
        raw = await self.client.get(self.key(user_id, sender))
        return json.loads(raw) if raw else None

    async def record_action(
        self,
        user_id: str,
        sender: str,
        action: ProfileAction,
        priority: Optional[str] = None,
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        profile = await self.get_profile(user_id, sender) or _new_profile(sender, now)

        profile["actions"][action.value] = profile["actions"].get(action.value, 0) + 1
        profile["total_received"] += 1
        profile["last_seen_at"] = now

        # priority feedback: high-priority archived, low-priority explored
        if priority == "high" and action == ProfileAction.ARCHIVED:
            profile["priority_feedback"]["high_archived"] += 1
        elif priority == "low" and action == ProfileAction.DEEPER_VIEWED:
            profile["priority_feedback"]["low_deeper_viewed"] += 1

        await self.client.set(self.key(user_id, sender), json.dumps(profile), ex=self.ttl_seconds)


def _new_profile(sender: str, now: str) -> Dict[str, Any]:
    return {
        "sender": sender.lower(),
        "domain": sender.split("@", 1)[1] if "@" in sender else sender,
        "total_received": 0,
        "actions": {action.value: 0 for action in ProfileAction},
        "priority_feedback": {"high_archived": 0, "low_deeper_viewed": 0},
        "first_seen_at": now,
        "last_seen_at": now,
    }


class EngagementNotifier:
    """Emits action-observed events without ever blocking or failing the caller"""

    def __init__(self, profile: EngagementProfile, user_id: str):
        self.profile = profile
        self.user_id = user_id
        self._tasks = BackgroundTaskQueue("engagement")

    def observe(self, sender: str, action: Optional[str], priority: Optional[str] = None) -> None:
        profile_action = map_action(action)
        self._tasks.submit(lambda: self._record(sender, profile_action, priority))

    async def _record(self, sender: str, action: ProfileAction, priority: Optional[str]) -> None:
        try:
            await self.profile.record_action(self.user_id, sender, action, priority)
        except Exception as e:
            logger.debug("Engagement signal dropped", sender=sender, action=action.value, error=str(e))

    async def drain(self) -> None:
        await self._tasks.drain()
