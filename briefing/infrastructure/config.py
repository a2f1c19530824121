from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os
import structlog

from briefing.domain.engagement.profile import EngagementProfile, RedisEngagementProfile
from briefing.domain.tool.action_ledger import DEFAULT_LEDGER_SIZE
from briefing.infrastructure.persistence.briefed_item_store import (
    BriefedItemStore, DEFAULT_NAMESPACE, DEFAULT_TTL_DAYS, InMemoryBriefedItemStore, RedisBriefedItemStore
)

logger = structlog.get_logger(__name__)


class BriefingSettings(BaseModel):
    """Runtime settings for the briefing service"""
    redis_url: Optional[str] = Field(None, description="Redis connection URL; in-memory store when unset")
    briefed_namespace: str = DEFAULT_NAMESPACE
    briefed_ttl_days: int = Field(DEFAULT_TTL_DAYS, ge=1)
    action_history_size: int = Field(DEFAULT_LEDGER_SIZE, ge=1)
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "briefing-session"

    @classmethod
    def from_env(cls) -> "BriefingSettings":
        load_dotenv()

        values = {
            "redis_url": os.getenv("REDIS_URL") or None,
            "briefed_namespace": os.getenv("BRIEFED_NAMESPACE"),
            "briefed_ttl_days": os.getenv("BRIEFED_TTL_DAYS"),
            "action_history_size": os.getenv("ACTION_HISTORY_SIZE"),
            "log_level": os.getenv("LOG_LEVEL"),
            "log_format": os.getenv("LOG_FORMAT"),
            "service_name": os.getenv("SERVICE_NAME"),
        }
        return cls(**{key: value for key, value in values.items() if value is not None})


def build_item_store(settings: BriefingSettings) -> BriefedItemStore:
    if settings.redis_url:
        logger.info("Using Redis briefed-item store", namespace=settings.briefed_namespace)
        return RedisBriefedItemStore(
            settings.redis_url,
            namespace=settings.briefed_namespace,
            ttl_days=settings.briefed_ttl_days,
        )

    logger.warning("REDIS_URL not set; briefed items are kept in memory only")
    return InMemoryBriefedItemStore(settings.briefed_namespace, settings.briefed_ttl_days)


def build_engagement_profile(settings: BriefingSettings) -> Optional[EngagementProfile]:
    if not settings.redis_url:
        return None
    return RedisEngagementProfile.from_url(settings.redis_url)
