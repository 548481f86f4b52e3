"""
Schedule Change History - bounded log of schedule mutations

- Newest entry first, capped at MAX_HISTORY_SIZE (oldest dropped).
- Undo is single-step: callers undo get_undoable_change() and then clear()
  the whole log. There is no multi-level undo stack.
- One history per editing session; the owner decides when to undo.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from doubles_scheduler.utils.ids import generate_id

ChangeType = Literal["match-reschedule", "court-reassign", "round-swap"]

CHANGE_MATCH_RESCHEDULE = "match-reschedule"
CHANGE_COURT_REASSIGN = "court-reassign"
CHANGE_ROUND_SWAP = "round-swap"
UNDOABLE_CHANGE_TYPES = (CHANGE_MATCH_RESCHEDULE, CHANGE_COURT_REASSIGN, CHANGE_ROUND_SWAP)

MAX_HISTORY_SIZE = 50


class ScheduleChange(BaseModel):
    """One recorded mutation with before/after snapshots"""

    id: str = Field(default_factory=lambda: generate_id("change"))
    type: ChangeType
    description: str
    old_value: Dict[str, Any]
    new_value: Dict[str, Any]
    match_id: Optional[str] = None
    round_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ScheduleChangeHistory:
    def __init__(self, max_size: int = MAX_HISTORY_SIZE):
        self.max_size = max_size
        self._changes: List[ScheduleChange] = []

    def __len__(self) -> int:
        return len(self._changes)

    def add_change(
        self,
        type: str,
        description: str,
        old_value: Dict[str, Any],
        new_value: Dict[str, Any],
        match_id: Optional[str] = None,
        round_id: Optional[str] = None,
    ) -> ScheduleChange:
        """Stamp an id and timestamp, then record the change at the head of the log"""
        change = ScheduleChange(
            type=type,
            description=description,
            old_value=dict(old_value),
            new_value=dict(new_value),
            match_id=match_id,
            round_id=round_id,
        )
        self._changes.insert(0, change)
        del self._changes[self.max_size :]
        return change

    def get_history(self) -> List[ScheduleChange]:
        return list(self._changes)

    def get_last_change(self) -> Optional[ScheduleChange]:
        return self._changes[0] if self._changes else None

    def can_undo(self) -> bool:
        return len(self._changes) > 0

    def get_undoable_change(self) -> Optional[ScheduleChange]:
        for change in self._changes:
            if change.type in UNDOABLE_CHANGE_TYPES:
                return change
        return None

    def clear(self) -> None:
        self._changes = []
