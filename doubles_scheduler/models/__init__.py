from doubles_scheduler.models.match import Match
from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.round import Round
from doubles_scheduler.models.team import Team
from doubles_scheduler.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Participant",
    "Team",
    "Round",
    "Match",
]
