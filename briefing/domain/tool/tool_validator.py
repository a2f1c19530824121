from typing import Annotated, Dict, Any, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from briefing.domain.errors import ToolValidationError


class ToolCallBase(BaseModel):
    """Common shape of a validated tool call"""
    model_config = ConfigDict(extra="ignore")


# Navigation

class SkipTopicCall(ToolCallBase):
    tool: Literal["skip_topic"]
    reason: Optional[str] = None


class NextItemCall(ToolCallBase):
    tool: Literal["next_item"]


class GoBackCall(ToolCallBase):
    tool: Literal["go_back"]
    steps: Union[Literal["topic_start"], int] = 1

    @field_validator("steps", mode="before")
    @classmethod
    def parse_steps(cls, value: Any) -> Any:
        if value is None:
            return 1
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return value

    @field_validator("steps")
    @classmethod
    def positive_steps(cls, value: Union[str, int]) -> Union[str, int]:
        if isinstance(value, int) and value < 1:
            raise ValueError("steps must be at least 1")
        return value


class RepeatThatCall(ToolCallBase):
    tool: Literal["repeat_that"]


class GoDeeperCall(ToolCallBase):
    tool: Literal["go_deeper"]
    aspect: Literal["full_email", "thread_history", "sender_info", "attachments", "related_emails"] = "full_email"
    email_id: Optional[str] = None


class PauseBriefingCall(ToolCallBase):
    tool: Literal["pause_briefing"]


class ResumeBriefingCall(ToolCallBase):
    tool: Literal["resume_briefing"]


class StopBriefingCall(ToolCallBase):
    tool: Literal["stop_briefing"]
    save_progress: bool = True


# Item actions

class ArchiveEmailCall(ToolCallBase):
    tool: Literal["archive_email"]
    email_id: Optional[str] = None


class MarkReadCall(ToolCallBase):
    tool: Literal["mark_read"]
    email_ids: List[str] = Field(default_factory=list)

    @field_validator("email_ids", mode="before")
    @classmethod
    def split_ids(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class FlagFollowupCall(ToolCallBase):
    tool: Literal["flag_followup"]
    email_id: Optional[str] = None
    due_date: str = "no_date"
    note: Optional[str] = None


class MuteSenderCall(ToolCallBase):
    tool: Literal["mute_sender"]
    sender_email: str
    duration: Literal["1_day", "1_week", "1_month", "forever"] = "forever"
    confirmed: bool = False


class PrioritizeVipCall(ToolCallBase):
    tool: Literal["prioritize_vip"]
    sender_email: str
    sender_name: Optional[str] = None


class UndoLastActionCall(ToolCallBase):
    tool: Literal["undo_last_action"]


NavigationCall = Union[
    SkipTopicCall, NextItemCall, GoBackCall, RepeatThatCall, GoDeeperCall,
    PauseBriefingCall, ResumeBriefingCall, StopBriefingCall,
]

ActionCall = Union[
    ArchiveEmailCall, MarkReadCall, FlagFollowupCall, MuteSenderCall,
    PrioritizeVipCall, UndoLastActionCall,
]

ToolCall = Annotated[Union[NavigationCall, ActionCall], Field(discriminator="tool")]

_tool_call_adapter: TypeAdapter = TypeAdapter(ToolCall)

NAVIGATION_TOOL_NAMES = frozenset({
    "skip_topic", "next_item", "go_back", "repeat_that", "go_deeper",
    "pause_briefing", "resume_briefing", "stop_briefing",
})
ACTION_TOOL_NAMES = frozenset({
    "archive_email", "mark_read", "flag_followup", "mute_sender",
    "prioritize_vip", "undo_last_action",
})


class ToolParameterValidator:
    """Validates raw tool-call arguments once, at the boundary"""

    @staticmethod
    def validate_tool_call(tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolCall:
        if tool_name not in NAVIGATION_TOOL_NAMES and tool_name not in ACTION_TOOL_NAMES:
            raise ToolValidationError(tool_name, f"Unknown tool: {tool_name}")

        payload = dict(arguments or {})
        payload["tool"] = tool_name

        try:
            return _tool_call_adapter.validate_python(payload)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'][1:]) or 'arguments'}: {error['msg']}"
                for error in e.errors()
            )
            raise ToolValidationError(tool_name, f"Invalid arguments for {tool_name}: {problems}") from e
