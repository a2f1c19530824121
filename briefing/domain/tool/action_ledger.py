from abc import ABC, abstractmethod
from typing import Deque, Dict, Any, List, Optional
from collections import deque
from datetime import datetime
from pydantic import BaseModel, Field
import structlog

from briefing.domain.models.briefing_state import utc_now

logger = structlog.get_logger(__name__)

DEFAULT_LEDGER_SIZE = 50


class EmailProvider(ABC):
    """Provider adapter (Gmail, Outlook, ...) used for actions and their inverses"""

    @abstractmethod
    async def archive(self, email_id: str) -> None:
        pass

    @abstractmethod
    async def unarchive(self, email_id: str) -> None:
        pass

    @abstractmethod
    async def mark_read(self, email_ids: List[str]) -> None:
        pass

    @abstractmethod
    async def mark_unread(self, email_ids: List[str]) -> None:
        pass

    @abstractmethod
    async def flag(self, email_id: str, due_date: Optional[str] = None) -> None:
        pass

    @abstractmethod
    async def unflag(self, email_id: str) -> None:
        pass


class LedgerEntry(BaseModel):
    """One externally-visible action that may be undone"""
    action: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    item_id: Optional[str] = None
    sender: Optional[str] = None
    reversible: bool = True
    timestamp: datetime = Field(default_factory=utc_now)


class UndoResult(BaseModel):
    success: bool
    message: str
    entry: Optional[LedgerEntry] = None


class ActionLedger:
    """Fixed-capacity ring of recent actions; the oldest entry falls off when full"""

    def __init__(self, capacity: int = DEFAULT_LEDGER_SIZE):
        self.capacity = capacity
        self._entries: Deque[LedgerEntry] = deque(maxlen=capacity)

    def record(
        self,
        action: str,
        arguments: Optional[Dict[str, Any]] = None,
        item_id: Optional[str] = None,
        sender: Optional[str] = None,
        reversible: bool = True,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            action=action,
            arguments=arguments or {},
            item_id=item_id,
            sender=sender,
            reversible=reversible,
        )
        self._entries.append(entry)
        return entry

    def pop(self) -> Optional[LedgerEntry]:
        return self._entries.pop() if self._entries else None

    def peek(self) -> Optional[LedgerEntry]:
        return self._entries[-1] if self._entries else None

    def push_back(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[LedgerEntry]:
        return list(self._entries)

    async def undo_last_action(self, context, provider: Optional[EmailProvider] = None) -> UndoResult:
        """Pop the most recent action and dispatch its inverse

        Local inverses (VIP list, mute map) act on the session context;
        mailbox inverses go through the provider. A failed inverse puts the
        entry back so the user can retry.
        """

        entry = self.pop()
        if entry is None:
            return UndoResult(success=False, message="There's nothing to undo.")

        if not entry.reversible:
            return UndoResult(
                success=False,
                message=f"Cannot undo {entry.action}. That action is not reversible.",
                entry=entry,
            )

        try:
            await _dispatch_inverse(entry, context, provider)
        except Exception as e:
            self.push_back(entry)
            logger.warning("Undo failed", action=entry.action, item_id=entry.item_id, error=str(e))
            return UndoResult(
                success=False,
                message=f"I couldn't undo {entry.action.replace('_', ' ')}: {e}",
                entry=entry,
            )

        logger.info("Action undone", action=entry.action, item_id=entry.item_id)
        return UndoResult(
            success=True,
            message=f"Undid {entry.action.replace('_', ' ')}.",
            entry=entry,
        )


async def _dispatch_inverse(entry: LedgerEntry, context, provider: Optional[EmailProvider]) -> None:
    if entry.action == "prioritize_vip":
        context.vip_senders.discard(entry.arguments["sender_email"].lower())
        return
    if entry.action == "mute_sender":
        context.muted_senders.pop(entry.arguments["sender_email"].lower(), None)
        return

    if provider is None:
        raise RuntimeError("no email provider is connected")

    if entry.action == "archive_email":
        await provider.unarchive(entry.item_id)
    elif entry.action == "mark_read":
        await provider.mark_unread(entry.arguments.get("email_ids") or [entry.item_id])
    elif entry.action == "flag_followup":
        await provider.unflag(entry.item_id)
    else:
        raise RuntimeError(f"no inverse is known for {entry.action}")
