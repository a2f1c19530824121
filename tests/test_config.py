"""
Tests for settings loading and store selection.
"""

import pytest
from pydantic import ValidationError

from briefing.domain.engagement.profile import RedisEngagementProfile
from briefing.infrastructure.config import BriefingSettings, build_engagement_profile, build_item_store
from briefing.infrastructure.persistence.briefed_item_store import InMemoryBriefedItemStore, RedisBriefedItemStore

ENV_KEYS = [
    "REDIS_URL", "BRIEFED_NAMESPACE", "BRIEFED_TTL_DAYS", "ACTION_HISTORY_SIZE",
    "LOG_LEVEL", "LOG_FORMAT", "SERVICE_NAME",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No briefing variables set, and no .env file to pick up."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestSettings:

    def test_defaults(self, clean_env):
        settings = BriefingSettings.from_env()
        assert settings.redis_url is None
        assert settings.briefed_namespace == "nexus:briefed"
        assert settings.briefed_ttl_days == 7
        assert settings.action_history_size == 50
        assert settings.log_format == "json"

    def test_reads_environment(self, clean_env):
        clean_env.setenv("REDIS_URL", "redis://cache:6379/2")
        clean_env.setenv("BRIEFED_TTL_DAYS", "3")
        clean_env.setenv("ACTION_HISTORY_SIZE", "10")
        clean_env.setenv("LOG_LEVEL", "DEBUG")

        settings = BriefingSettings.from_env()
        assert settings.redis_url == "redis://cache:6379/2"
        assert settings.briefed_ttl_days == 3
        assert settings.action_history_size == 10
        assert settings.log_level == "DEBUG"

    def test_rejects_bad_ttl(self, clean_env):
        clean_env.setenv("BRIEFED_TTL_DAYS", "0")
        with pytest.raises(ValidationError):
            BriefingSettings.from_env()


class TestStoreSelection:

    def test_in_memory_without_redis(self):
        settings = BriefingSettings(briefed_ttl_days=2)
        store = build_item_store(settings)
        assert isinstance(store, InMemoryBriefedItemStore)
        assert store.ttl_seconds == 2 * 24 * 60 * 60
        assert build_engagement_profile(settings) is None

    def test_redis_when_url_is_set(self):
        settings = BriefingSettings(redis_url="redis://localhost:6379/0", briefed_namespace="test:briefed")
        store = build_item_store(settings)
        assert isinstance(store, RedisBriefedItemStore)
        assert store.key("u1") == "test:briefed:u1"
        assert isinstance(build_engagement_profile(settings), RedisEngagementProfile)
