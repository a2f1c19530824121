# State = everything needed to continue a briefing from the current turn.

# Item statuses (pending, briefed, actioned, skipped), one-way per item

# The cursor and the history stack used by go_back

# Flags (paused, stopped)

# Recent reversible actions for undo

# Live sessions are keyed by session id and discarded when the session ends;
# only handled item statuses outlive the session, through the briefed-item store
