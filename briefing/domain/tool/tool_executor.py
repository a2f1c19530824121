from typing import Callable, Dict, Any, List, Literal, Optional
from pydantic import BaseModel, Field
from enum import Enum
import time
import structlog

from briefing.domain.context.session_context import SessionContext
from briefing.domain.errors import InvalidNavigationError, ToolValidationError, UnknownItemError
from briefing.domain.models.briefing_state import Cursor, ItemStatus, MarkOutcome, NavigationOutcome
from briefing.domain.session.navigation import TOPIC_START
from briefing.domain.session.tracker import BriefingSessionTracker
from briefing.infrastructure.observability.logging import briefing_logger
from .action_ledger import EmailProvider
from .tool_validator import (
    ActionCall, ArchiveEmailCall, FlagFollowupCall, GoBackCall, GoDeeperCall, MarkReadCall,
    MuteSenderCall, NavigationCall, NAVIGATION_TOOL_NAMES, PrioritizeVipCall, SkipTopicCall,
    StopBriefingCall, ToolParameterValidator, UndoLastActionCall
)

logger = structlog.get_logger(__name__)


class NavigationAction(str, Enum):
    """What a navigation result asks the caller to do"""
    SKIP_TOPIC = "skip_topic"
    NEXT_ITEM = "next_item"
    GO_BACK = "go_back"
    REPEAT = "repeat"
    GO_DEEPER = "go_deeper"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    NONE = "none"


class BriefingState(BaseModel):
    """Read-only view of a session handed to the navigation executors"""
    current_topic_index: int
    current_item_index: int
    total_topics: int
    topic_items: List[int] = Field(default_factory=list)
    is_paused: bool = False
    is_stopped: bool = False
    is_complete: bool = False
    remaining: int = 0
    history: List[Cursor] = Field(default_factory=list)

    @classmethod
    def from_tracker(cls, tracker: BriefingSessionTracker) -> "BriefingState":
        cursor = tracker.get_cursor()
        progress = tracker.get_progress()
        return cls(
            current_topic_index=cursor.topic_index,
            current_item_index=cursor.item_index,
            total_topics=len(tracker.topics),
            topic_items=[len(topic.items) for topic in tracker.topics],
            is_paused=tracker.paused,
            is_stopped=tracker.stopped,
            is_complete=tracker.navigator.is_complete,
            remaining=progress.remaining,
            history=tracker.history,
        )


class NavigationResult(BaseModel):
    """Outcome of a navigation executor; describes, but never performs, the change"""
    success: bool
    message: str
    action: NavigationAction = NavigationAction.NONE
    data: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """What the reasoning component receives back for one tool call"""
    success: bool
    message: str
    tool: str
    data: Dict[str, Any] = Field(default_factory=dict)
    requires_confirmation: bool = False
    risk_level: Literal["low", "medium", "high"] = "low"
    cursor_context: Optional[str] = None


def _rejected(message: str) -> NavigationResult:
    return NavigationResult(success=False, message=message)


STOPPED_MESSAGE = "The briefing has been stopped."


# Navigation executors

def execute_skip_topic(call: SkipTopicCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing skip_topic", reason=call.reason, current_topic=state.current_topic_index)

    if state.is_stopped:
        return _rejected(STOPPED_MESSAGE)
    if state.is_complete:
        return _rejected("You've reached the end of the briefing. There's nothing left to skip.")

    return NavigationResult(
        success=True,
        message="Skipping to the next topic.",
        action=NavigationAction.SKIP_TOPIC,
        data={"skipped_topic_index": state.current_topic_index, "skipped_reason": call.reason},
    )


def execute_next_item(call: NavigationCall, state: BriefingState) -> NavigationResult:
    logger.info(
        "Executing next_item",
        current_topic=state.current_topic_index,
        current_item=state.current_item_index,
    )

    if state.is_stopped:
        return _rejected(STOPPED_MESSAGE)

    return NavigationResult(success=True, message="Moving on.", action=NavigationAction.NEXT_ITEM)


def execute_go_back(call: GoBackCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing go_back", steps=call.steps, history=len(state.history))

    if state.is_stopped:
        return _rejected(STOPPED_MESSAGE)
    if not state.history:
        return _rejected("There's nothing to go back to yet.")

    if call.steps == TOPIC_START:
        return NavigationResult(
            success=True,
            message="Going back to the start of this topic.",
            action=NavigationAction.GO_BACK,
            data={"steps": TOPIC_START},
        )

    if call.steps > len(state.history):
        return _rejected(
            f"Can't go back {call.steps} steps. You've only covered {len(state.history)} items."
        )

    target = state.history[-call.steps]
    return NavigationResult(
        success=True,
        message="Going back." if call.steps == 1 else f"Going back {call.steps} items.",
        action=NavigationAction.GO_BACK,
        data={
            "steps": call.steps,
            "new_topic_index": target.topic_index,
            "new_item_index": target.item_index,
        },
    )


def execute_repeat_that(call: NavigationCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing repeat_that")

    # the caller replays its last spoken text
    return NavigationResult(success=True, message="", action=NavigationAction.REPEAT)


def execute_go_deeper(call: GoDeeperCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing go_deeper", aspect=call.aspect, current_item=state.current_item_index)

    return NavigationResult(
        success=True,
        message="Getting more details...",
        action=NavigationAction.GO_DEEPER,
        data={"aspect": call.aspect, "email_id": call.email_id},
    )


def execute_pause_briefing(call: NavigationCall, state: BriefingState) -> NavigationResult:
    logger.info(
        "Executing pause_briefing",
        current_topic=state.current_topic_index,
        current_item=state.current_item_index,
    )

    if state.is_stopped:
        return _rejected(STOPPED_MESSAGE)
    if state.is_paused:
        return _rejected("The briefing is already paused.")

    return NavigationResult(
        success=True,
        message="Pausing the briefing. Just say \"resume\" when you're ready.",
        action=NavigationAction.PAUSE,
    )


def execute_resume_briefing(call: NavigationCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing resume_briefing")

    if state.is_stopped:
        return _rejected(STOPPED_MESSAGE)
    if not state.is_paused:
        return _rejected("The briefing is not paused.")

    return NavigationResult(success=True, message="Resuming the briefing.", action=NavigationAction.RESUME)


def execute_stop_briefing(call: StopBriefingCall, state: BriefingState) -> NavigationResult:
    logger.info("Executing stop_briefing", save_progress=call.save_progress, remaining=state.remaining)

    if state.remaining > 0:
        message = f"Stopping the briefing. You have {state.remaining} items remaining."
    else:
        message = "That's your briefing complete."

    return NavigationResult(
        success=True,
        message=message,
        action=NavigationAction.STOP,
        data={"save_progress": call.save_progress},
    )


NAVIGATION_TOOL_EXECUTORS: Dict[str, Callable[[Any, BriefingState], NavigationResult]] = {
    "skip_topic": execute_skip_topic,
    "next_item": execute_next_item,
    "go_back": execute_go_back,
    "repeat_that": execute_repeat_that,
    "go_deeper": execute_go_deeper,
    "pause_briefing": execute_pause_briefing,
    "resume_briefing": execute_resume_briefing,
    "stop_briefing": execute_stop_briefing,
}


def execute_navigation_tool(call: NavigationCall, state: BriefingState) -> NavigationResult:
    """Dispatch a validated navigation call; never mutates anything"""

    executor = NAVIGATION_TOOL_EXECUTORS.get(call.tool)
    if executor is None:
        logger.warning("Unknown navigation tool", tool_name=call.tool)
        return _rejected(f"Unknown navigation: {call.tool}")

    try:
        return executor(call, state)
    except Exception as e:
        logger.error("Navigation execution error", tool_name=call.tool, error=str(e), exc_info=True)
        return _rejected(f"Navigation failed: {e}")


def apply_navigation(result: NavigationResult, tracker: BriefingSessionTracker) -> Optional[NavigationOutcome]:
    """Perform on the tracker the transition a successful result describes"""

    if not result.success:
        return None

    if result.action == NavigationAction.NEXT_ITEM:
        return tracker.advance()
    if result.action == NavigationAction.SKIP_TOPIC:
        return tracker.skip_topic()
    if result.action == NavigationAction.GO_BACK:
        return tracker.go_back(result.data.get("steps", 1))
    if result.action == NavigationAction.PAUSE:
        return tracker.pause()
    if result.action == NavigationAction.RESUME:
        return tracker.resume()
    if result.action == NavigationAction.STOP:
        return tracker.stop()
    return None


class BriefingToolExecutor:
    """Runs one validated tool call against a session context"""

    def __init__(self, context: SessionContext, provider: Optional[EmailProvider] = None):
        self.context = context
        self.provider = provider

    @property
    def tracker(self) -> BriefingSessionTracker:
        return self.context.tracker

    async def execute(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Validate, dispatch and report; failures come back as success=False"""

        started = time.perf_counter()
        try:
            call = ToolParameterValidator.validate_tool_call(tool_name, arguments)
        except ToolValidationError as e:
            result = ToolResult(success=False, message=e.message, tool=tool_name)
        else:
            if call.tool in NAVIGATION_TOOL_NAMES:
                result = self._run_navigation(call)
            else:
                result = await self._run_action(call)

        if result.cursor_context is None:
            result.cursor_context = self.tracker.build_cursor_context()
        self.context.touch()

        briefing_logger.log_tool_execution(
            tool_name=tool_name,
            session_id=self.context.session_id,
            input_data=arguments or {},
            duration_ms=(time.perf_counter() - started) * 1000,
            success=result.success,
            error=None if result.success else result.message,
        )
        return result

    # Navigation

    def _run_navigation(self, call: NavigationCall) -> ToolResult:
        navigation = execute_navigation_tool(call, BriefingState.from_tracker(self.tracker))
        outcome = apply_navigation(navigation, self.tracker)

        success = navigation.success and (outcome is None or outcome.success)
        message = outcome.message if outcome is not None else navigation.message
        data = dict(navigation.data)
        data["action"] = navigation.action.value

        if outcome is not None:
            data["cursor"] = outcome.cursor.model_dump()
            data["complete"] = outcome.complete
            data["status_changes"] = [change.model_dump(mode="json") for change in outcome.status_changes]
            if outcome.item is not None:
                data["item"] = outcome.item.model_dump(mode="json")

        if navigation.action == NavigationAction.REPEAT:
            message = self.context.last_spoken_text
            data["text"] = self.context.last_spoken_text
        elif navigation.action == NavigationAction.GO_DEEPER:
            self._observe_deeper(data)
        elif navigation.action == NavigationAction.STOP:
            data["end_session"] = True

        briefing_logger.log_navigation(
            session_id=self.context.session_id,
            action=navigation.action.value,
            success=success,
            cursor=self.tracker.get_cursor().model_dump(),
            status_changes=len(outcome.status_changes) if outcome is not None else 0,
            message=message,
        )
        return ToolResult(success=success, message=message, tool=call.tool, data=data)

    def _observe_deeper(self, data: Dict[str, Any]) -> None:
        item_id = data.get("email_id")
        ref = self.tracker.registry.get_ref(item_id) if item_id else self.tracker.get_current_item()
        if ref is None:
            return

        data["email_id"] = ref.id
        if self.tracker.engagement is not None:
            priority = ref.priority.value if ref.priority else None
            self.tracker.engagement.observe(ref.sender, "go_deeper", priority)

    # Item actions

    async def _run_action(self, call: ActionCall) -> ToolResult:
        try:
            if isinstance(call, ArchiveEmailCall):
                return await self._archive(call)
            if isinstance(call, MarkReadCall):
                return await self._mark_read(call)
            if isinstance(call, FlagFollowupCall):
                return await self._flag_followup(call)
            if isinstance(call, MuteSenderCall):
                return self._mute_sender(call)
            if isinstance(call, PrioritizeVipCall):
                return self._prioritize_vip(call)
            if isinstance(call, UndoLastActionCall):
                return await self._undo()
        except UnknownItemError as e:
            logger.warning("Action on unknown item; session may be out of sync", item_id=e.item_id)
            return ToolResult(success=False, message=UnknownItemError.user_message, tool=call.tool)
        except InvalidNavigationError as e:
            return ToolResult(success=False, message=e.message, tool=call.tool)
        except Exception as e:
            logger.error("Tool execution error", tool_name=call.tool, error=str(e), exc_info=True)
            return ToolResult(
                success=False,
                message=f"Failed to {call.tool.replace('_', ' ')}: {e}",
                tool=call.tool,
            )

        return ToolResult(success=False, message=f"Unknown action: {call.tool}", tool=call.tool)

    def _target(self, email_id: Optional[str]) -> str:
        if email_id:
            self.tracker.registry.require(email_id)
            return email_id

        current = self.tracker.get_current_item()
        if current is None:
            raise InvalidNavigationError("There's no current email to act on.")
        return current.id

    def _already(self, item_id: str, action: str) -> bool:
        state = self.tracker.lookup(item_id)
        return state is not None and state.status == ItemStatus.ACTIONED and state.action_taken == action

    def _settle_after_action(self, item_ids: List[str]) -> Dict[str, Any]:
        """Advance when the current item was just handled"""

        current = self.tracker.get_current_item()
        if current is None or current.id not in item_ids:
            return {}

        outcome = self.tracker.advance()
        data = {"advanced": True, "complete": outcome.complete}
        if outcome.item is not None:
            data["item"] = outcome.item.model_dump(mode="json")
        return data

    async def _archive(self, call: ArchiveEmailCall) -> ToolResult:
        item_id = self._target(call.email_id)
        if self._already(item_id, "archive_email"):
            return ToolResult(success=True, message="Already archived.", tool=call.tool)

        if self.provider is not None:
            await self.provider.archive(item_id)

        ref = self.tracker.registry.get_ref(item_id)
        self.context.ledger.record("archive_email", call.model_dump(), item_id=item_id, sender=ref.sender)
        self.tracker.mark_actioned(item_id, "archive_email")

        return ToolResult(
            success=True,
            message="Archived.",
            tool=call.tool,
            data=self._settle_after_action([item_id]),
        )

    async def _mark_read(self, call: MarkReadCall) -> ToolResult:
        item_ids = [self._target(email_id) for email_id in call.email_ids] or [self._target(None)]
        fresh = [item_id for item_id in item_ids if not self._already(item_id, "mark_read")]
        if not fresh:
            return ToolResult(success=True, message="Already marked as read.", tool=call.tool)

        if self.provider is not None:
            await self.provider.mark_read(fresh)

        self.context.ledger.record(
            "mark_read",
            {"email_ids": fresh},
            item_id=fresh[0],
        )
        for item_id in fresh:
            self.tracker.mark_actioned(item_id, "mark_read")

        message = "Marked as read." if len(fresh) == 1 else f"Marked {len(fresh)} emails as read."
        return ToolResult(
            success=True,
            message=message,
            tool=call.tool,
            data=self._settle_after_action(fresh),
        )

    async def _flag_followup(self, call: FlagFollowupCall) -> ToolResult:
        item_id = self._target(call.email_id)
        if self._already(item_id, "flagged"):
            return ToolResult(success=True, message="Already flagged.", tool=call.tool, risk_level="medium")

        due_date = None if call.due_date == "no_date" else call.due_date
        if self.provider is not None:
            await self.provider.flag(item_id, due_date)

        ref = self.tracker.registry.get_ref(item_id)
        self.context.ledger.record("flag_followup", call.model_dump(), item_id=item_id, sender=ref.sender)

        # flagging keeps the item on the cursor
        outcome = self.tracker.mark_actioned(item_id, "flagged")

        due_text = f" for {due_date.replace('_', ' ')}" if due_date else ""
        return ToolResult(
            success=True,
            message=f"Flagged for follow-up{due_text}.",
            tool=call.tool,
            data={"status_changed": outcome == MarkOutcome.APPLIED},
            risk_level="medium",
        )

    def _mute_sender(self, call: MuteSenderCall) -> ToolResult:
        sender = call.sender_email.lower()

        if self.context.is_vip(sender) and not call.confirmed:
            return ToolResult(
                success=False,
                message=f"{call.sender_email} is on your VIP list. Are you sure you want to mute them?",
                tool=call.tool,
                requires_confirmation=True,
                risk_level="high",
            )

        self.context.muted_senders[sender] = call.duration
        self.context.ledger.record("mute_sender", call.model_dump(), sender=sender)

        return ToolResult(
            success=True,
            message=f"Muted {call.sender_email} for {call.duration.replace('_', ' ')}.",
            tool=call.tool,
            risk_level="medium",
        )

    def _prioritize_vip(self, call: PrioritizeVipCall) -> ToolResult:
        sender = call.sender_email.lower()
        self.context.vip_senders.add(sender)
        self.context.ledger.record("prioritize_vip", call.model_dump(), sender=sender)

        return ToolResult(
            success=True,
            message=f"Added {call.sender_name or call.sender_email} to your VIP list.",
            tool=call.tool,
            risk_level="medium",
        )

    async def _undo(self) -> ToolResult:
        undo = await self.context.ledger.undo_last_action(self.context, self.provider)
        data = {"undone": undo.entry.action} if undo.success and undo.entry else {}
        return ToolResult(success=undo.success, message=undo.message, tool="undo_last_action", data=data)
