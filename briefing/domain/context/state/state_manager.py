from typing import Dict, List, Optional, Set
import asyncio
import structlog

from briefing.domain.context.session_context import SessionContext
from briefing.domain.engagement.profile import EngagementProfile
from briefing.domain.models.briefing_state import Topic
from briefing.domain.session.tracker import BriefingSessionTracker
from briefing.infrastructure.persistence.briefed_item_store import BriefedItemStore

logger = structlog.get_logger(__name__)


class StateManager:
    """Manages live briefing sessions by session id"""

    def __init__(
        self,
        store: Optional[BriefedItemStore] = None,
        engagement: Optional[EngagementProfile] = None,
        ledger_size: int = 50,
    ):
        self.store = store
        self.engagement = engagement
        self.ledger_size = ledger_size
        self.sessions: Dict[str, SessionContext] = {}
        self._lock = asyncio.Lock()

    async def create_session(
        self,
        session_id: str,
        user_id: str,
        topics: List[Topic],
        vip_senders: Optional[Set[str]] = None,
    ) -> SessionContext:
        """Create a session and its tracker"""

        tracker = BriefingSessionTracker(
            topics,
            store=self.store,
            user_id=user_id,
            engagement=self.engagement,
        )
        context = SessionContext(
            session_id,
            user_id,
            tracker,
            ledger_size=self.ledger_size,
            vip_senders=vip_senders,
        )

        async with self._lock:
            if session_id in self.sessions:
                raise ValueError(f"Session already exists: {session_id}")
            self.sessions[session_id] = context

        logger.info("Briefing session created", session_id=session_id, user_id=user_id)
        return context

    async def get_session(self, session_id: str) -> Optional[SessionContext]:
        async with self._lock:
            return self.sessions.get(session_id)

    async def end_session(self, session_id: str, save_progress: bool = True) -> int:
        """Stop, flush and discard a session; returns records flushed"""

        async with self._lock:
            context = self.sessions.pop(session_id, None)

        if context is None:
            return 0

        context.tracker.stop()
        flushed = await context.tracker.flush() if save_progress else 0

        logger.info("Briefing session ended", session_id=session_id, flushed=flushed)
        return flushed

    async def end_all_sessions(self) -> None:
        async with self._lock:
            session_ids = list(self.sessions.keys())

        for session_id in session_ids:
            await self.end_session(session_id)

    async def get_all_active_sessions(self) -> Dict[str, SessionContext]:
        async with self._lock:
            return self.sessions.copy()
