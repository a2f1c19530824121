from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Annotated, Dict, Any, List, Optional
from uuid import uuid4
import structlog

from briefing.domain.context.session_context import SessionContext
from briefing.domain.context.state.state_manager import StateManager
from briefing.domain.models.briefing_state import Topic
from briefing.domain.tool.tool_executor import BriefingToolExecutor, ToolResult
from briefing.infrastructure.observability.logging import bind_session, briefing_logger

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/briefing/sessions", tags=["briefing"])


class CreateSessionRequest(BaseModel):
    user_id: str
    session_id: Optional[str] = None
    topics: List[Topic] = Field(default_factory=list)
    vip_senders: List[str] = Field(default_factory=list)


class AddTopicsRequest(BaseModel):
    topics: List[Topic]


class ToolCallRequest(BaseModel):
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    session_id: str
    websocket_url: str
    progress: Dict[str, Any]
    cursor_context: str


def get_state_manager(request: Request) -> StateManager:
    return request.app.state.state_manager


async def get_session_context(
    session_id: str,
    state_manager: Annotated[StateManager, Depends(get_state_manager)],
) -> SessionContext:
    context = await state_manager.get_session(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Briefing session not found: {session_id}")
    bind_session(session_id, context.user_id)
    return context


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    state_manager: Annotated[StateManager, Depends(get_state_manager)],
):
    session_id = request.session_id or str(uuid4())
    try:
        context = await state_manager.create_session(
            session_id,
            request.user_id,
            request.topics,
            vip_senders=set(request.vip_senders),
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    briefing_logger.log_session_event(session_id, "created", {"topics": len(request.topics)})
    return SessionResponse(
        session_id=session_id,
        websocket_url=f"/ws/briefing/{session_id}",
        progress=context.tracker.get_progress().get_summary(),
        cursor_context=context.tracker.build_cursor_context(),
    )


@router.post("/{session_id}/topics")
async def add_topics(
    request: AddTopicsRequest,
    context: Annotated[SessionContext, Depends(get_session_context)],
):
    report = context.tracker.add_topics(request.topics)
    return {
        "merge": report.model_dump(),
        "progress": context.tracker.get_progress().get_summary(),
        "compact_reference": context.tracker.build_compact_reference(),
    }


@router.post("/{session_id}/tools", response_model=ToolResult)
async def call_tool(
    request: ToolCallRequest,
    http_request: Request,
    context: Annotated[SessionContext, Depends(get_session_context)],
    state_manager: Annotated[StateManager, Depends(get_state_manager)],
):
    executor = BriefingToolExecutor(context, http_request.app.state.email_provider)
    result = await executor.execute(request.tool, request.arguments)

    if result.data.get("end_session"):
        flushed = await state_manager.end_session(
            context.session_id,
            save_progress=result.data.get("save_progress", True),
        )
        result.data["flushed"] = flushed
        briefing_logger.log_session_event(context.session_id, "ended", {"flushed": flushed, "via": "tool"})

    return result


@router.get("/{session_id}/progress")
async def get_progress(context: Annotated[SessionContext, Depends(get_session_context)]):
    return {
        **context.get_state_summary(),
        "cursor_context": context.tracker.build_cursor_context(),
        "compact_reference": context.tracker.build_compact_reference(),
    }


@router.delete("/{session_id}")
async def end_session(
    session_id: str,
    state_manager: Annotated[StateManager, Depends(get_state_manager)],
    save_progress: bool = True,
):
    context = await state_manager.get_session(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Briefing session not found: {session_id}")

    flushed = await state_manager.end_session(session_id, save_progress=save_progress)
    briefing_logger.log_session_event(session_id, "ended", {"flushed": flushed, "via": "api"})
    return {"session_id": session_id, "flushed": flushed}
