"""
Conflict Report Models

Pydantic models shared across:
- ConflictDetector (services/conflict_detector.py)
- ScheduleManipulator round-swap validation
- Route handlers (routes/schedule.py)

Conflicts are ephemeral: they are recomputed on demand and never persisted.
"""

from typing import List, Literal

from pydantic import BaseModel, Field

from doubles_scheduler.utils.ids import generate_id

ConflictType = Literal["court-double-booking", "player-overlap", "time-conflict"]
ConflictSeverity = Literal["error", "warning"]

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


class ScheduleConflict(BaseModel):
    """A detected scheduling problem affecting one or more matches"""

    id: str = Field(default_factory=lambda: generate_id("conflict"))
    type: ConflictType
    severity: ConflictSeverity
    message: str
    affected_matches: List[str]
    suggestions: List[str] = Field(default_factory=list)


class RoundSwapValidation(BaseModel):
    """Outcome of checking whether two rounds may trade places"""

    is_valid: bool
    errors: List[str]
    warnings: List[str]


def has_blocking_conflicts(conflicts: List[ScheduleConflict]) -> bool:
    return any(c.severity == SEVERITY_ERROR for c in conflicts)
