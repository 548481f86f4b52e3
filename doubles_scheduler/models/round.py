from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from doubles_scheduler.utils.ids import generate_id

if TYPE_CHECKING:
    from doubles_scheduler.models.match import Match
    from doubles_scheduler.models.tournament import Tournament

ROUND_PENDING = "pending"
ROUND_ACTIVE = "active"
ROUND_COMPLETED = "completed"


class Round(SQLModel, table=True):
    id: str = Field(default_factory=lambda: generate_id("round"), primary_key=True)
    tournament_id: str = Field(foreign_key="tournament.id", index=True)
    round_number: int
    status: str = Field(default=ROUND_PENDING)  # "pending" | "active" | "completed"

    # Odd head counts: exactly one of these is set
    bye_team_id: Optional[str] = Field(default=None)  # pair-signup
    bye_participant_id: Optional[str] = Field(default=None)  # individual-signup

    tournament: "Tournament" = Relationship(back_populates="rounds")
    matches: List["Match"] = Relationship(back_populates="round")

    def has_bye(self) -> bool:
        return self.bye_team_id is not None or self.bye_participant_id is not None
