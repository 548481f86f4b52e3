from datetime import datetime, timedelta

from sqlmodel import Session

from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.tournament import Tournament
from doubles_scheduler.services.schedule_generator import generate_optimized_schedule
from doubles_scheduler.services.schedule_store import (
    delete_schedule,
    load_matches,
    load_participants,
    load_rounds,
    load_teams,
    save_generated_schedule,
    save_matches,
    save_rounds,
)
from doubles_scheduler.utils.model_copy import clone


def _setup(session: Session, count: int = 4) -> Tournament:
    tournament = Tournament(name="Store Test", court_count=2, scheduled_start=datetime(2026, 3, 14, 9, 0))
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    # Insert out of order; position decides signup order
    for i in reversed(range(count)):
        session.add(Participant(tournament_id=tournament.id, name=f"Player {i + 1}", position=i))
    session.commit()
    return tournament


def test_load_participants_in_signup_order(session: Session):
    tournament = _setup(session, 5)

    names = [p.name for p in load_participants(session, tournament.id)]
    assert names == ["Player 1", "Player 2", "Player 3", "Player 4", "Player 5"]


def test_save_and_load_generated_schedule(session: Session):
    tournament = _setup(session)
    schedule = generate_optimized_schedule(tournament, load_participants(session, tournament.id))
    expected = [(m.round_number, m.match_number, m.scheduled_time) for m in schedule.scheduled_matches]

    save_generated_schedule(session, tournament.id, schedule)

    rounds = load_rounds(session, tournament.id)
    matches = load_matches(session, tournament.id)
    assert [r.round_number for r in rounds] == [1, 2, 3]
    assert len(load_teams(session, tournament.id)) == 6
    assert [(m.round_number, m.match_number, m.scheduled_time) for m in matches] == expected

    round_ids = {r.round_number: r.id for r in rounds}
    assert all(m.round_id == round_ids[m.round_number] for m in matches)


def test_regenerate_replaces_previous_schedule(session: Session):
    tournament = _setup(session)
    participants = load_participants(session, tournament.id)

    save_generated_schedule(session, tournament.id, generate_optimized_schedule(tournament, participants))
    first_ids = {m.id for m in load_matches(session, tournament.id)}
    save_generated_schedule(session, tournament.id, generate_optimized_schedule(tournament, participants))

    matches = load_matches(session, tournament.id)
    assert len(matches) == 6
    assert not first_ids & {m.id for m in matches}
    assert len(load_rounds(session, tournament.id)) == 3


def test_save_updated_copies(session: Session):
    tournament = _setup(session)
    save_generated_schedule(
        session, tournament.id, generate_optimized_schedule(tournament, load_participants(session, tournament.id))
    )

    match = load_matches(session, tournament.id)[0]
    new_time = match.scheduled_time + timedelta(hours=3)
    save_matches(session, [clone(match, scheduled_time=new_time, court_number=2)])

    round_ = load_rounds(session, tournament.id)[0]
    save_rounds(session, [clone(round_, round_number=99)])

    reloaded = session.get(type(match), match.id)
    assert reloaded.scheduled_time == new_time
    assert reloaded.court_number == 2
    assert load_rounds(session, tournament.id)[-1].round_number == 99


def test_delete_schedule(session: Session):
    tournament = _setup(session)
    save_generated_schedule(
        session, tournament.id, generate_optimized_schedule(tournament, load_participants(session, tournament.id))
    )

    # 6 matches, 3 rounds, 6 teams
    assert delete_schedule(session, tournament.id) == 15
    assert load_matches(session, tournament.id) == []
    assert load_rounds(session, tournament.id) == []
    assert load_participants(session, tournament.id)
