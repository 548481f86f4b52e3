from typing import TYPE_CHECKING

from sqlmodel import Field, Relationship, SQLModel

from doubles_scheduler.utils.ids import generate_id

if TYPE_CHECKING:
    from doubles_scheduler.models.tournament import Tournament


class Participant(SQLModel, table=True):
    id: str = Field(default_factory=lambda: generate_id("participant"), primary_key=True)
    tournament_id: str = Field(foreign_key="tournament.id", index=True)
    name: str
    position: int = Field(default=0)  # signup order; pair-signup teams are (0,1), (2,3), ...

    tournament: "Tournament" = Relationship(back_populates="participants")
