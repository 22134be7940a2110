"""
Stage History Ledger operations.

The ledger is the ordered list of stage-residency intervals of one
application. These functions are pure: they never mutate their inputs and
never touch the database. The writer persists whatever they return.

Invariant: at most one entry in a ledger is open (``exited_at`` unset), and it
is always the most recently opened one.
"""

import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from models.records import StageHistoryEntry
from models.status import Stage

ONE_DAY = timedelta(days=1)

DEFAULT_ACTION = "stage_change"


def duration_days(entered_at: datetime, exited_at: datetime) -> int:
    """
    Whole days spent in a stage, rounded up.

    ``ceil((exited_at - entered_at) / 1 day)``, clamped at 0 when the clock
    went backwards between the two stamps.
    """
    elapsed = exited_at - entered_at
    if elapsed <= timedelta(0):
        return 0
    return math.ceil(elapsed / ONE_DAY)


def elapsed_whole_days(entered_at: datetime, now: datetime) -> int:
    """Completed days since ``entered_at``; used for the days-in-stage counter."""
    elapsed = now - entered_at
    if elapsed <= timedelta(0):
        return 0
    return elapsed // ONE_DAY


def open_entry(
    stage: Stage,
    at: datetime,
    actor: str,
    notes: Optional[str] = None,
    action: Optional[str] = None,
) -> StageHistoryEntry:
    """Build a new open ledger entry for ``stage`` entered at ``at``."""
    return StageHistoryEntry(
        stage=Stage(stage),
        entered_at=at,
        moved_by=actor,
        notes=notes,
        action=action or DEFAULT_ACTION,
    )


def close_entry(entry: StageHistoryEntry, at: datetime) -> StageHistoryEntry:
    """
    Close an open entry at ``at`` and compute its duration.

    Closing an entry that is already closed returns it unchanged.
    """
    if not entry.is_open:
        return entry
    return entry.model_copy(
        update={"exited_at": at, "duration_days": duration_days(entry.entered_at, at)}
    )


def open_entries(history: Sequence[StageHistoryEntry]) -> List[StageHistoryEntry]:
    """All entries without an exit stamp (empty or one element in a healthy ledger)."""
    return [entry for entry in history if entry.is_open]


def current_entry(history: Sequence[StageHistoryEntry]) -> Optional[StageHistoryEntry]:
    """The open entry, or None when the ledger has no open interval."""
    for entry in reversed(history):
        if entry.is_open:
            return entry
    return None


def advance(
    history: Sequence[StageHistoryEntry],
    stage: Stage,
    at: datetime,
    actor: str,
    notes: Optional[str] = None,
    action: Optional[str] = None,
) -> List[StageHistoryEntry]:
    """
    Return a new ledger with every open entry closed at ``at`` and a new open
    entry for ``stage`` appended.
    """
    closed = [close_entry(entry, at) for entry in history]
    closed.append(open_entry(stage, at, actor, notes, action))
    return closed
