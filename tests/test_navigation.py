"""
Tests for cursor movement: advance, skip_topic, go_back, pause/resume, stop.
"""

import pytest

from briefing.domain.models.briefing_state import Cursor, ItemStatus
from briefing.domain.session.navigation import COMPLETE_MESSAGE, STOPPED_MESSAGE
from briefing.domain.session.tracker import BriefingSessionTracker
from tests.factories import make_topics


def position(tracker):
    return tracker.get_cursor().as_tuple()


def statuses(tracker):
    return {state.item_id: state.status for state in tracker.registry.states()}


class TestAdvance:
    """Forward movement marks the current item briefed."""

    def test_walks_two_one_layout_to_complete(self, tracker):
        """(0,0) -> (0,1) -> (1,0) -> complete."""
        assert position(tracker) == (0, 0)

        tracker.advance()
        assert position(tracker) == (0, 1)
        tracker.advance()
        assert position(tracker) == (1, 0)

        outcome = tracker.advance()
        assert outcome.complete is True
        assert outcome.item is None
        assert outcome.message == COMPLETE_MESSAGE
        assert tracker.get_current_item() is None
        assert tracker.get_progress().briefed == 3

    def test_reports_status_change(self, tracker):
        outcome = tracker.advance()
        assert outcome.success is True
        assert [(c.item_id, c.status) for c in outcome.status_changes] == [("t0-i0", ItemStatus.BRIEFED)]
        assert outcome.item.id == "t0-i1"

    def test_skips_items_handled_out_of_band(self, tracker):
        """Items actioned elsewhere are never revisited."""
        tracker.mark_actioned("t0-i1", "archive_email")
        tracker.advance()
        assert position(tracker) == (1, 0)

    def test_complete_is_idempotent(self, tracker):
        for _ in range(3):
            tracker.advance()
        history_before = tracker.history

        again = tracker.advance()
        assert again.success is True
        assert again.complete is True
        assert again.status_changes == []
        assert tracker.history == history_before

    def test_reaches_complete_within_total_items_steps(self):
        tracker = BriefingSessionTracker(make_topics([3, 0, 4, 1]))
        for _ in range(8):
            tracker.advance()
        assert tracker.is_complete()
        assert tracker.get_progress().remaining == 0

    def test_initial_cursor_skips_empty_topics(self):
        tracker = BriefingSessionTracker(make_topics([0, 2]))
        assert position(tracker) == (1, 0)

    def test_empty_briefing_starts_complete(self):
        tracker = BriefingSessionTracker([])
        assert tracker.get_current_item() is None
        assert tracker.is_complete()


class TestSkipTopic:
    """Skipping marks every pending item of the topic skipped."""

    def test_skips_whole_newsletter_topic(self):
        tracker = BriefingSessionTracker(make_topics([3, 2], labels=["Newsletters", "Work"]))
        outcome = tracker.skip_topic()

        assert len(outcome.status_changes) == 3
        assert all(change.status == ItemStatus.SKIPPED for change in outcome.status_changes)
        assert position(tracker) == (1, 0)
        assert tracker.registry.pending_in_topic(0) == []
        assert tracker.get_progress().skipped == 3

    def test_leaves_handled_items_alone(self, tracker):
        tracker.advance()
        outcome = tracker.skip_topic()
        assert [c.item_id for c in outcome.status_changes] == ["t0-i1"]
        assert tracker.lookup("t0-i0").status == ItemStatus.BRIEFED

    def test_last_topic_reaches_complete(self, tracker):
        tracker.skip_topic()
        outcome = tracker.skip_topic()
        assert outcome.success is True
        assert outcome.complete is True
        assert outcome.message == COMPLETE_MESSAGE

    def test_while_complete_changes_nothing(self, tracker):
        tracker.skip_topic()
        tracker.skip_topic()
        history = tracker.history

        outcome = tracker.skip_topic()
        assert outcome.status_changes == []
        assert tracker.history == history


class TestGoBack:
    """Going back restores cursors without touching statuses."""

    def test_empty_history_fails_without_mutation(self, tracker):
        before = statuses(tracker)
        outcome = tracker.go_back()

        assert outcome.success is False
        assert outcome.message == "There's nothing to go back to yet."
        assert position(tracker) == (0, 0)
        assert statuses(tracker) == before

    def test_restores_previous_cursor_and_statuses(self, tracker):
        tracker.advance()
        after_advance = statuses(tracker)

        outcome = tracker.go_back()
        assert outcome.success is True
        assert outcome.message == "Going back."
        assert position(tracker) == (0, 0)
        assert statuses(tracker) == after_advance
        assert tracker.lookup("t0-i0").status == ItemStatus.BRIEFED

    def test_advance_after_go_back_moves_on(self, tracker):
        """The re-visited briefed item is not marked again."""
        tracker.advance()
        tracker.go_back()

        outcome = tracker.advance()
        assert outcome.status_changes == []
        assert position(tracker) == (0, 1)

    def test_multiple_steps(self, tracker):
        tracker.advance()
        tracker.advance()
        outcome = tracker.go_back(2)
        assert outcome.message == "Going back 2 items."
        assert position(tracker) == (0, 0)
        assert tracker.history == []

    def test_too_many_steps_fails(self, tracker):
        tracker.advance()
        outcome = tracker.go_back(3)
        assert outcome.success is False
        assert "only covered 1" in outcome.message
        assert position(tracker) == (0, 1)

    def test_invalid_steps_fail(self, tracker):
        tracker.advance()
        assert tracker.go_back(0).success is False
        assert tracker.go_back("later").success is False

    def test_topic_start(self):
        tracker = BriefingSessionTracker(make_topics([3, 1]))
        tracker.advance()
        tracker.advance()

        outcome = tracker.go_back("topic_start")
        assert outcome.success is True
        assert position(tracker) == (0, 0)
        assert outcome.message == "Going back to the start of this topic."

    def test_topic_start_at_first_item_of_topic_fails(self, tracker):
        tracker.advance()
        tracker.advance()
        assert position(tracker) == (1, 0)
        outcome = tracker.go_back("topic_start")
        assert outcome.success is False
        assert position(tracker) == (1, 0)

    def test_go_back_from_complete(self, tracker):
        for _ in range(3):
            tracker.advance()
        tracker.go_back()
        assert position(tracker) == (1, 0)

    def test_history_is_bounded_by_item_count(self):
        tracker = BriefingSessionTracker(make_topics([1, 1]))
        tracker.advance()
        tracker.advance()
        tracker.go_back()
        tracker.advance()
        tracker.go_back()
        tracker.advance()
        assert len(tracker.history) <= 2


class TestPauseResumeStop:

    def test_pause_and_resume(self, tracker):
        assert tracker.pause().success is True
        assert tracker.paused is True
        assert tracker.pause().success is False

        assert tracker.resume().success is True
        assert tracker.paused is False
        assert tracker.resume().success is False

    def test_pause_does_not_move_cursor(self, tracker):
        tracker.pause()
        assert position(tracker) == (0, 0)
        assert tracker.get_progress().paused is True

    def test_stop_reports_remaining(self, tracker):
        tracker.advance()
        outcome = tracker.stop()
        assert outcome.success is True
        assert outcome.message == "Stopping the briefing. You have 2 items remaining."
        assert tracker.stopped is True

    def test_stop_is_idempotent(self, tracker):
        tracker.stop()
        outcome = tracker.stop()
        assert outcome.success is True
        assert outcome.message == STOPPED_MESSAGE

    @pytest.mark.parametrize("move", ["advance", "skip_topic", "go_back", "pause", "resume"])
    def test_stopped_session_rejects_navigation(self, tracker, move):
        tracker.advance()
        tracker.stop()
        before = statuses(tracker)

        outcome = getattr(tracker, move)()
        assert outcome.success is False
        assert outcome.message == STOPPED_MESSAGE
        assert statuses(tracker) == before
        assert tracker.get_cursor() == Cursor(topic_index=0, item_index=1)
