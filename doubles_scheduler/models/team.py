from typing import TYPE_CHECKING, Tuple

from sqlmodel import Field, Relationship, SQLModel

from doubles_scheduler.utils.ids import generate_id

if TYPE_CHECKING:
    from doubles_scheduler.models.tournament import Tournament


class Team(SQLModel, table=True):
    id: str = Field(default_factory=lambda: generate_id("team"), primary_key=True)
    tournament_id: str = Field(foreign_key="tournament.id", index=True)
    player1_id: str = Field(foreign_key="participant.id")
    player2_id: str = Field(foreign_key="participant.id")
    is_permanent: bool = Field(default=False)  # False for individual-signup rotations

    tournament: "Tournament" = Relationship(back_populates="teams")

    def player_ids(self) -> Tuple[str, str]:
        return (self.player1_id, self.player2_id)
