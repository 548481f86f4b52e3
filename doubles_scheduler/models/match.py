from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

from doubles_scheduler.utils.ids import generate_id

if TYPE_CHECKING:
    from doubles_scheduler.models.round import Round
    from doubles_scheduler.models.tournament import Tournament

MATCH_SCHEDULED = "scheduled"
MATCH_IN_PROGRESS = "in-progress"
MATCH_COMPLETED = "completed"
MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_IN_PROGRESS, MATCH_COMPLETED)


class Match(SQLModel, table=True):
    id: str = Field(default_factory=lambda: generate_id("match"), primary_key=True)
    tournament_id: str = Field(foreign_key="tournament.id", index=True)
    round_id: Optional[str] = Field(default=None, foreign_key="round.id")
    round_number: int
    match_number: int  # ordinal within the round (1..N)
    team1_id: str = Field(foreign_key="team.id")
    team2_id: str = Field(foreign_key="team.id")
    court_number: int
    scheduled_time: datetime

    status: str = Field(default=MATCH_SCHEDULED)  # "scheduled" | "in-progress" | "completed"
    # {"team1_score", "team2_score", "winner_id", "end_reason"}; not validated here
    result: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    completed_at: Optional[datetime] = Field(default=None)

    tournament: "Tournament" = Relationship(back_populates="matches")
    round: Optional["Round"] = Relationship(back_populates="matches")
