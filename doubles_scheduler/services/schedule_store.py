"""
Schedule Store - persistence for generated and edited schedules

The engine hands over transient instances (GeneratedSchedule from the
generator, updated copies from the manipulator); this module writes them
through a SQLModel session. Callers own the session; every write function
commits.
"""

import logging
from typing import List, Sequence

from sqlmodel import Session, select

from doubles_scheduler.models.match import Match
from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.round import Round
from doubles_scheduler.models.team import Team
from doubles_scheduler.services.schedule_generator import GeneratedSchedule

logger = logging.getLogger(__name__)


def load_participants(session: Session, tournament_id: str) -> List[Participant]:
    """Participants in signup order"""
    return list(
        session.exec(
            select(Participant)
            .where(Participant.tournament_id == tournament_id)
            .order_by(Participant.position, Participant.id)
        ).all()
    )


def load_teams(session: Session, tournament_id: str) -> List[Team]:
    return list(session.exec(select(Team).where(Team.tournament_id == tournament_id)).all())


def load_rounds(session: Session, tournament_id: str) -> List[Round]:
    return list(
        session.exec(select(Round).where(Round.tournament_id == tournament_id).order_by(Round.round_number)).all()
    )


def load_matches(session: Session, tournament_id: str) -> List[Match]:
    """Stable order: round_number, match_number"""
    return list(
        session.exec(
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.round_number, Match.match_number, Match.id)
        ).all()
    )


def delete_schedule(session: Session, tournament_id: str) -> int:
    """Remove every match, round and team of a tournament; returns rows deleted"""
    deleted = 0
    for model in (Match, Round, Team):
        for row in session.exec(select(model).where(model.tournament_id == tournament_id)).all():
            session.delete(row)
            deleted += 1
    session.commit()
    return deleted


def save_generated_schedule(session: Session, tournament_id: str, schedule: GeneratedSchedule) -> None:
    """Replace the tournament's teams, rounds and matches with a freshly generated set"""
    removed = delete_schedule(session, tournament_id)

    session.add_all(schedule.teams)
    session.add_all(schedule.rounds)
    session.flush()
    session.add_all(schedule.scheduled_matches)
    session.commit()

    logger.info(
        "Saved schedule for tournament %s: %d teams, %d rounds, %d matches (replaced %d rows)",
        tournament_id,
        len(schedule.teams),
        len(schedule.rounds),
        len(schedule.scheduled_matches),
        removed,
    )


def save_matches(session: Session, matches: Sequence[Match]) -> None:
    """Upsert updated match copies; attached instances are flushed by the commit"""
    for match in matches:
        if match not in session:
            session.merge(match)
    session.commit()


def save_rounds(session: Session, rounds: Sequence[Round]) -> None:
    """Upsert updated round copies; attached instances are flushed by the commit"""
    for round_ in rounds:
        if round_ not in session:
            session.merge(round_)
    session.commit()
