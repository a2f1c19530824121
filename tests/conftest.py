"""
Shared pytest fixtures for the briefing test suite.

Stores and providers are in-memory or mocked; no Redis server is needed.
Async code is driven with asyncio.run inside plain test functions.
"""

import pytest
from fastapi.testclient import TestClient

from briefing.application.api.api_server import create_app
from briefing.domain.context.session_context import SessionContext
from briefing.domain.context.state.state_manager import StateManager
from briefing.domain.session.tracker import BriefingSessionTracker
from briefing.infrastructure.config import BriefingSettings
from briefing.infrastructure.persistence.briefed_item_store import InMemoryBriefedItemStore
from tests.factories import make_provider, make_redis_client, make_topics


@pytest.fixture
def topics():
    """Two topics: "Topic 0" with two items, "Topic 1" with one."""
    return make_topics([2, 1])


@pytest.fixture
def tracker(topics):
    return BriefingSessionTracker(topics)


@pytest.fixture
def memory_store():
    return InMemoryBriefedItemStore()


@pytest.fixture
def persisted_tracker(topics, memory_store):
    """Tracker wired to an in-memory store for user "user-1"."""
    return BriefingSessionTracker(topics, store=memory_store, user_id="user-1")


@pytest.fixture
def provider():
    return make_provider()


@pytest.fixture
def redis_client():
    return make_redis_client()


@pytest.fixture
def session_context(topics):
    tracker = BriefingSessionTracker(topics)
    return SessionContext("session-1", "user-1", tracker, vip_senders={"Boss@Example.com"})


@pytest.fixture
def state_manager(memory_store):
    return StateManager(store=memory_store)


@pytest.fixture
def client(state_manager, provider):
    """TestClient running the app lifespan, backed by the in-memory store."""
    app = create_app(
        settings=BriefingSettings(log_format="console"),
        state_manager=state_manager,
        email_provider=provider,
    )
    with TestClient(app) as test_client:
        yield test_client
