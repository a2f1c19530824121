import json
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from typing import Dict, Any
import structlog

from briefing.domain.context.session_context import SessionContext
from briefing.domain.tool.tool_executor import BriefingToolExecutor
from briefing.infrastructure.observability.logging import bind_session, briefing_logger
from .connection_manager import ConnectionManager
from .schema.events import (
    EventType, ConnectionEvent, ProgressEvent, SpokenEvent, ToolCallEvent, ToolResultEvent
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/ws/briefing/{session_id}")
async def briefing_websocket(websocket: WebSocket, session_id: str):
    """Voice-turn endpoint: tool calls in, tool results out"""

    state_manager = websocket.app.state.state_manager
    connection_manager: ConnectionManager = websocket.app.state.connection_manager

    context = await state_manager.get_session(session_id)
    if context is None:
        await websocket.close(code=1008, reason="Unknown briefing session")
        return

    await connection_manager.connect(websocket, session_id, context.user_id)
    bind_session(session_id, context.user_id)
    executor = BriefingToolExecutor(context, websocket.app.state.email_provider)

    try:
        await connection_manager.send_event(
            session_id,
            ProgressEvent(payload=context.tracker.get_progress().get_summary(), session_id=session_id)
        )

        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError as e:
                logger.warning("Non-JSON frame", session_id=session_id, error=str(e))
                await connection_manager.send_error(session_id, "Malformed event", error_code="invalid_event")
                continue

            try:
                keep_open = await handle_event(data, context, executor, connection_manager, state_manager)
            except ValidationError as e:
                logger.warning("Malformed event", session_id=session_id, error=str(e))
                await connection_manager.send_error(session_id, "Malformed event", error_code="invalid_event")
                continue

            if not keep_open:
                break

    except WebSocketDisconnect:
        logger.info("Client disconnected", session_id=session_id)
    finally:
        await connection_manager.disconnect(session_id)


async def handle_event(
    data: Dict[str, Any],
    context: SessionContext,
    executor: BriefingToolExecutor,
    connection_manager: ConnectionManager,
    state_manager,
) -> bool:
    """Handle one client event; returns False once the session has ended"""

    session_id = context.session_id
    event_type = data.get("type")

    if event_type == EventType.SPOKEN:
        event = SpokenEvent(**_fields(data))
        context.last_spoken_text = event.text
        return True

    if event_type != EventType.TOOL_CALL:
        await connection_manager.send_error(
            session_id,
            f"Unsupported event type: {event_type}",
            error_code="unsupported_event"
        )
        return True

    event = ToolCallEvent(**_fields(data))
    result = await executor.execute(event.tool, event.arguments)

    await connection_manager.send_event(
        session_id,
        ToolResultEvent(payload=result.model_dump(mode="json"), call_id=event.call_id, session_id=session_id)
    )

    if not result.data.get("end_session"):
        return True

    flushed = await state_manager.end_session(session_id, save_progress=result.data.get("save_progress", True))
    briefing_logger.log_session_event(session_id, "ended", {"flushed": flushed, "via": "websocket"})
    await connection_manager.send_event(
        session_id,
        ConnectionEvent(status="disconnected", session_id=session_id)
    )
    return False


def _fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Event body without its type tag, which the event class fixes"""
    return {key: value for key, value in data.items() if key != "type"}
