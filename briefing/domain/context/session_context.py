from typing import Dict, Any, Optional, Set
from datetime import datetime

from briefing.domain.models.briefing_state import utc_now
from briefing.domain.session.tracker import BriefingSessionTracker
from briefing.domain.tool.action_ledger import ActionLedger, DEFAULT_LEDGER_SIZE


class SessionContext:
    """Everything one briefing session owns, created at start and discarded at end"""

    def __init__(
        self,
        session_id: str,
        user_id: str,
        tracker: BriefingSessionTracker,
        ledger_size: int = DEFAULT_LEDGER_SIZE,
        vip_senders: Optional[Set[str]] = None,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.tracker = tracker
        self.ledger = ActionLedger(ledger_size)
        self.vip_senders: Set[str] = {sender.lower() for sender in (vip_senders or set())}
        self.muted_senders: Dict[str, str] = {}
        self.last_spoken_text = ""
        self.created_at: datetime = utc_now()
        self.last_activity: datetime = self.created_at

    def is_vip(self, sender: Optional[str]) -> bool:
        return bool(sender) and sender.lower() in self.vip_senders

    def touch(self) -> None:
        self.last_activity = utc_now()

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the session"""
        progress = self.tracker.get_progress()
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "progress": progress.get_summary(),
            "stopped": self.tracker.stopped,
            "undoable_actions": len(self.ledger),
            "vip_senders": sorted(self.vip_senders),
            "muted_senders": dict(self.muted_senders),
            "last_activity": self.last_activity.isoformat(),
        }
