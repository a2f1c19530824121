from typing import Dict, Set, Optional
from fastapi import WebSocket
import asyncio
import structlog

from briefing.domain.models.briefing_state import utc_now
from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)

STALE_AFTER_SECONDS = 300


class ConnectionManager:
    """Manages WebSocket connections per briefing session"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.session_metadata: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str, user_id: Optional[str] = None):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[session_id] = websocket
            self.session_metadata[session_id] = {
                "user_id": user_id,
                "connected_at": utc_now(),
                "last_activity": utc_now()
            }

        await self.send_event(
            session_id,
            ConnectionEvent(
                status="connected",
                session_id=session_id
            )
        )

        logger.info("WebSocket connected", session_id=session_id, user_id=user_id)

    async def disconnect(self, session_id: str):
        """Disconnect a WebSocket connection"""
        async with self._lock:
            ws = self.active_connections.pop(session_id, None)
            self.session_metadata.pop(session_id, None)

        if ws is not None:
            try:
                await ws.close()
            except RuntimeError as e:
                # already closed by the client
                logger.debug("WebSocket already closed", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    async def send_event(self, session_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific session"""
        websocket = self.active_connections.get(session_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        try:
            await websocket.send_json(event.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to send event", session_id=session_id, error=str(e))
            await self.disconnect(session_id)
            return False

        if session_id in self.session_metadata:
            self.session_metadata[session_id]["last_activity"] = utc_now()
        return True

    async def send_error(self, session_id: str, error_message: str, error_code: Optional[str] = None):
        """Send an error event to a session"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code,
            session_id=session_id
        )
        await self.send_event(session_id, error_event)

    def get_session_metadata(self, session_id: str) -> Optional[Dict]:
        return self.session_metadata.get(session_id)

    def get_active_sessions(self) -> Set[str]:
        return set(self.active_connections.keys())

    async def close_stale(self) -> int:
        """Disconnect sessions idle for longer than the stale threshold"""
        now = utc_now()
        stale_sessions = [
            session_id
            for session_id, metadata in list(self.session_metadata.items())
            if (now - metadata["last_activity"]).total_seconds() > STALE_AFTER_SECONDS
        ]

        for session_id in stale_sessions:
            logger.warning("Disconnecting stale session", session_id=session_id)
            await self.disconnect(session_id)
        return len(stale_sessions)

    async def health_check(self, interval_seconds: float = 60):
        """Periodic health check to clean up stale connections"""
        while True:
            try:
                await self.close_stale()
            except Exception as e:
                logger.error("Health check error", error=str(e))

            await asyncio.sleep(interval_seconds)
