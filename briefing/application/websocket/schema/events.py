from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from briefing.domain.models.briefing_state import utc_now


class EventType(str, Enum):
    """WebSocket event types"""
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SPOKEN = "spoken"
    PROGRESS = "progress"
    ERROR = "error"
    CONNECTION = "connection"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: Optional[str] = None


class ToolCallEvent(BaseEvent):
    """Tool call chosen by the reasoning loop for one voice turn"""
    type: Literal[EventType.TOOL_CALL] = EventType.TOOL_CALL
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: Optional[str] = None


class SpokenEvent(BaseEvent):
    """Text the voice layer just spoke; kept for repeat_that"""
    type: Literal[EventType.SPOKEN] = EventType.SPOKEN
    text: str


class ToolResultEvent(BaseEvent):
    """Result of a tool call, with the cursor context for the next turn"""
    type: Literal[EventType.TOOL_RESULT] = EventType.TOOL_RESULT
    call_id: Optional[str] = None
    payload: Dict[str, Any]


class ProgressEvent(BaseEvent):
    """Progress snapshot"""
    type: Literal[EventType.PROGRESS] = EventType.PROGRESS
    payload: Dict[str, Any]


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected"]
