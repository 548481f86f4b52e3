from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from doubles_scheduler.utils.ids import generate_id

if TYPE_CHECKING:
    from doubles_scheduler.models.match import Match
    from doubles_scheduler.models.participant import Participant
    from doubles_scheduler.models.round import Round
    from doubles_scheduler.models.team import Team

INDIVIDUAL_SIGNUP = "individual-signup"
PAIR_SIGNUP = "pair-signup"
SIGNUP_MODES = (INDIVIDUAL_SIGNUP, PAIR_SIGNUP)

SCORING_RULES = ("win-by-2", "first-to-limit")

DEFAULT_COURT_COUNT = 4
DEFAULT_MATCH_DURATION = 20
DEFAULT_POINT_LIMIT = 11


class Tournament(SQLModel, table=True):
    id: str = Field(default_factory=lambda: generate_id("tournament"), primary_key=True)
    name: str
    mode: str = Field(default=INDIVIDUAL_SIGNUP)  # "individual-signup" | "pair-signup"

    # Settings (consumed by the scheduler, never mutated by it)
    court_count: int = Field(default=DEFAULT_COURT_COUNT)
    match_duration: int = Field(default=DEFAULT_MATCH_DURATION)  # minutes
    point_limit: int = Field(default=DEFAULT_POINT_LIMIT)
    scoring_rule: str = Field(default="win-by-2")  # "win-by-2" | "first-to-limit"
    time_limit: bool = Field(default=True)

    status: str = Field(default="setup")  # "setup" | "active" | "completed"
    scheduled_start: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    participants: List["Participant"] = Relationship(back_populates="tournament")
    teams: List["Team"] = Relationship(back_populates="tournament")
    rounds: List["Round"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
