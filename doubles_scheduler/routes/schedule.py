import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from doubles_scheduler.database import get_session
from doubles_scheduler.models.match import Match
from doubles_scheduler.models.round import Round
from doubles_scheduler.models.tournament import Tournament
from doubles_scheduler.routes.tournaments import get_tournament_or_404
from doubles_scheduler.services.change_history import ScheduleChange, ScheduleChangeHistory
from doubles_scheduler.services.conflict_detector import detect_conflicts, validate_match_reschedule
from doubles_scheduler.services.schedule_generator import (
    ScheduleGenerationError,
    create_default_schedule_settings,
    generate_optimized_schedule,
)
from doubles_scheduler.services.schedule_manipulator import (
    MatchLockedError,
    RoundSwapError,
    UndoError,
    bulk_move_to_court,
    move_match_to_court,
    reassign_court,
    reschedule_match,
    swap_rounds,
    swap_rounds_with_court_rebalancing,
    undo_last_change,
    validate_round_swap,
)
from doubles_scheduler.services.schedule_store import (
    load_matches,
    load_participants,
    load_rounds,
    load_teams,
    save_generated_schedule,
    save_matches,
    save_rounds,
)
from doubles_scheduler.utils.conflict_report import RoundSwapValidation, ScheduleConflict, has_blocking_conflicts
from doubles_scheduler.utils.time_slots import generate_time_slots, to_naive_utc

logger = logging.getLogger(__name__)

router = APIRouter()

# One editing session per tournament, kept in process memory
_histories: Dict[str, ScheduleChangeHistory] = {}


def get_change_history(tournament_id: str) -> ScheduleChangeHistory:
    if tournament_id not in _histories:
        _histories[tournament_id] = ScheduleChangeHistory()
    return _histories[tournament_id]


# ============================================================================
# Schemas
# ============================================================================


class ScheduleGenerateRequest(BaseModel):
    start_time: Optional[datetime] = None
    court_count: Optional[int] = None
    match_duration: Optional[int] = None
    rest_period: Optional[int] = None

    @field_validator("start_time")
    @classmethod
    def naive_start_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else v


class OptimizationResponse(BaseModel):
    total_duration: float
    sessions_count: int
    average_rest_period: float
    court_utilization: float


class ScheduleGenerateResponse(BaseModel):
    rounds_count: int
    matches_count: int
    teams_count: int
    start_time: datetime
    optimization: OptimizationResponse


class TeamResponse(BaseModel):
    id: str
    player1_id: str
    player2_id: str
    is_permanent: bool

    class Config:
        from_attributes = True


class RoundResponse(BaseModel):
    id: str
    round_number: int
    status: str
    bye_team_id: Optional[str] = None
    bye_participant_id: Optional[str] = None

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    id: str
    tournament_id: str
    round_id: Optional[str] = None
    round_number: int
    match_number: int
    team1_id: str
    team2_id: str
    court_number: int
    scheduled_time: datetime
    status: str
    result: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    rounds: List[RoundResponse]
    matches: List[MatchResponse]
    teams: List[TeamResponse]


class RescheduleRequest(BaseModel):
    scheduled_time: datetime
    court_number: int
    force: bool = False

    @field_validator("scheduled_time")
    @classmethod
    def naive_scheduled_time(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class CourtRequest(BaseModel):
    court_number: int


class MatchMutationResponse(BaseModel):
    match: MatchResponse
    conflicts: List[ScheduleConflict] = []


class BulkMoveRequest(BaseModel):
    match_ids: List[str]
    court_number: int


class BulkMoveResponse(BaseModel):
    moved_ids: List[str]
    failed_ids: List[str]
    matches: List[MatchResponse]


class MoveToCourtResponse(BaseModel):
    moved: bool
    slot_found: bool
    match: Optional[MatchResponse] = None
    conflicts: List[ScheduleConflict] = []


class RoundSwapRequest(BaseModel):
    round1_number: int
    round2_number: int
    rebalance_courts: bool = True


class RoundSwapResponse(BaseModel):
    rounds: List[RoundResponse]
    matches: List[MatchResponse]
    warnings: List[str] = []


class UndoResponse(BaseModel):
    undone: ScheduleChange
    matches: List[MatchResponse]
    rounds: List[RoundResponse]


# ============================================================================
# Helpers
# ============================================================================


def _get_match_or_404(session: Session, tournament_id: str, match_id: str) -> Match:
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


def _get_round_or_404(rounds: List[Round], round_number: int) -> Round:
    for round_ in rounds:
        if round_.round_number == round_number:
            return round_
    raise HTTPException(status_code=404, detail=f"Round {round_number} not found")


def _validate_court(tournament: Tournament, court_number: int) -> None:
    if not 1 <= court_number <= tournament.court_count:
        raise HTTPException(
            status_code=400,
            detail=f"court_number must be between 1 and {tournament.court_count}",
        )


# ============================================================================
# Generation + read
# ============================================================================


@router.post("/tournaments/{tournament_id}/schedule/generate", response_model=ScheduleGenerateResponse)
def generate_schedule(
    tournament_id: str,
    payload: Optional[ScheduleGenerateRequest] = None,
    session: Session = Depends(get_session),
) -> ScheduleGenerateResponse:
    """Generate (or regenerate) the full schedule, replacing any existing one"""
    tournament = get_tournament_or_404(session, tournament_id)
    participants = load_participants(session, tournament_id)

    overrides = payload.model_dump(exclude_none=True) if payload else {}
    try:
        schedule = generate_optimized_schedule(tournament, participants, overrides)
    except ScheduleGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    start_time = min(m.scheduled_time for m in schedule.scheduled_matches)
    response = ScheduleGenerateResponse(
        rounds_count=len(schedule.rounds),
        matches_count=len(schedule.scheduled_matches),
        teams_count=len(schedule.teams),
        start_time=start_time,
        optimization=OptimizationResponse(**asdict(schedule.optimization)),
    )

    # Later edits validate courts and durations against the tournament
    for key in ("court_count", "match_duration"):
        if key in overrides:
            setattr(tournament, key, overrides[key])
    session.add(tournament)

    save_generated_schedule(session, tournament_id, schedule)
    get_change_history(tournament_id).clear()
    return response


@router.get("/tournaments/{tournament_id}/schedule", response_model=ScheduleResponse)
def get_schedule(tournament_id: str, session: Session = Depends(get_session)) -> ScheduleResponse:
    get_tournament_or_404(session, tournament_id)
    return ScheduleResponse(
        rounds=[RoundResponse.model_validate(r) for r in load_rounds(session, tournament_id)],
        matches=[MatchResponse.model_validate(m) for m in load_matches(session, tournament_id)],
        teams=[TeamResponse.model_validate(t) for t in load_teams(session, tournament_id)],
    )


@router.get("/tournaments/{tournament_id}/schedule/conflicts", response_model=List[ScheduleConflict])
def get_schedule_conflicts(tournament_id: str, session: Session = Depends(get_session)) -> List[ScheduleConflict]:
    """Recompute conflicts for the stored schedule. Deterministic for the same stored data."""
    get_tournament_or_404(session, tournament_id)
    return detect_conflicts(load_matches(session, tournament_id), load_rounds(session, tournament_id))


@router.get("/tournaments/{tournament_id}/schedule/time-slots", response_model=List[datetime])
def get_time_slots(tournament_id: str, session: Session = Depends(get_session)) -> List[datetime]:
    """Parallel court-rounds needed for the stored matches, starting at the first match"""
    tournament = get_tournament_or_404(session, tournament_id)
    matches = load_matches(session, tournament_id)
    if matches:
        start_time = min(m.scheduled_time for m in matches)
    else:
        start_time = create_default_schedule_settings(tournament).start_time
    return generate_time_slots(start_time, tournament.match_duration, tournament.court_count, len(matches))


@router.get("/tournaments/{tournament_id}/schedule/history", response_model=List[ScheduleChange])
def get_schedule_history(tournament_id: str, session: Session = Depends(get_session)) -> List[ScheduleChange]:
    """Changes made in this editing session, newest first"""
    get_tournament_or_404(session, tournament_id)
    return get_change_history(tournament_id).get_history()


@router.post("/tournaments/{tournament_id}/schedule/undo", response_model=UndoResponse)
def undo_schedule_change(tournament_id: str, session: Session = Depends(get_session)) -> UndoResponse:
    """Revert the most recent change, then clear the history (single-step undo)"""
    get_tournament_or_404(session, tournament_id)
    history = get_change_history(tournament_id)

    change = history.get_undoable_change()
    if change is None:
        raise HTTPException(status_code=400, detail="Nothing to undo")

    try:
        result = undo_last_change(change, load_matches(session, tournament_id), load_rounds(session, tournament_id))
    except UndoError as e:
        logger.warning("Undo failed for tournament %s: %s", tournament_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    except MatchLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    save_matches(session, result.updated_matches)
    save_rounds(session, result.updated_rounds)
    history.clear()
    logger.info("Undid %s for tournament %s", change.type, tournament_id)

    return UndoResponse(
        undone=change,
        matches=[MatchResponse.model_validate(m) for m in load_matches(session, tournament_id)],
        rounds=[RoundResponse.model_validate(r) for r in load_rounds(session, tournament_id)],
    )


# ============================================================================
# Match mutations
# ============================================================================


@router.post(
    "/tournaments/{tournament_id}/matches/{match_id}/reschedule",
    response_model=MatchMutationResponse,
)
def reschedule_match_endpoint(
    tournament_id: str,
    match_id: str,
    payload: RescheduleRequest,
    session: Session = Depends(get_session),
) -> MatchMutationResponse:
    """
    Move a match to a new time and court.

    Raises:
        HTTPException: 409 if the move introduces error conflicts (unless force)
        HTTPException: 409 if the match is completed
    """
    tournament = get_tournament_or_404(session, tournament_id)
    _validate_court(tournament, payload.court_number)
    match = _get_match_or_404(session, tournament_id, match_id)

    conflicts = validate_match_reschedule(
        match, payload.scheduled_time, payload.court_number, load_matches(session, tournament_id)
    )
    if has_blocking_conflicts(conflicts) and not payload.force:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Reschedule would create conflicts",
                "conflicts": [c.model_dump() for c in conflicts],
            },
        )

    try:
        updated = reschedule_match(
            match, payload.scheduled_time, payload.court_number, get_change_history(tournament_id)
        )
    except MatchLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    save_matches(session, [updated])
    logger.info("Rescheduled match %s to court %d at %s", match_id, updated.court_number, updated.scheduled_time)
    return MatchMutationResponse(match=MatchResponse.model_validate(updated), conflicts=conflicts)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/court", response_model=MatchMutationResponse)
def reassign_court_endpoint(
    tournament_id: str,
    match_id: str,
    payload: CourtRequest,
    session: Session = Depends(get_session),
) -> MatchMutationResponse:
    tournament = get_tournament_or_404(session, tournament_id)
    _validate_court(tournament, payload.court_number)
    match = _get_match_or_404(session, tournament_id, match_id)

    try:
        updated = reassign_court(match, payload.court_number, get_change_history(tournament_id))
    except MatchLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    conflicts = validate_match_reschedule(
        match, updated.scheduled_time, updated.court_number, load_matches(session, tournament_id)
    )
    save_matches(session, [updated])
    return MatchMutationResponse(match=MatchResponse.model_validate(updated), conflicts=conflicts)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/move-to-court", response_model=MoveToCourtResponse)
def move_to_court_endpoint(
    tournament_id: str,
    match_id: str,
    payload: CourtRequest,
    session: Session = Depends(get_session),
) -> MoveToCourtResponse:
    """Drop a match onto a court at the nearest free slot; no change when nothing fits"""
    tournament = get_tournament_or_404(session, tournament_id)
    _validate_court(tournament, payload.court_number)
    match = _get_match_or_404(session, tournament_id, match_id)

    try:
        result = move_match_to_court(
            match,
            payload.court_number,
            load_matches(session, tournament_id),
            get_change_history(tournament_id),
            tournament.match_duration,
        )
    except MatchLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if result.match is not None:
        save_matches(session, [result.match])

    return MoveToCourtResponse(
        moved=result.match is not None,
        slot_found=result.slot_found,
        match=MatchResponse.model_validate(result.match) if result.match is not None else None,
        conflicts=result.conflicts,
    )


@router.post("/tournaments/{tournament_id}/matches/move-to-court", response_model=BulkMoveResponse)
def bulk_move_to_court_endpoint(
    tournament_id: str,
    payload: BulkMoveRequest,
    session: Session = Depends(get_session),
) -> BulkMoveResponse:
    """Move several matches onto one court in the given order; unplaceable ids are reported, not raised"""
    tournament = get_tournament_or_404(session, tournament_id)
    _validate_court(tournament, payload.court_number)

    result = bulk_move_to_court(
        payload.match_ids,
        payload.court_number,
        load_matches(session, tournament_id),
        get_change_history(tournament_id),
        tournament.match_duration,
    )
    moved = set(result.moved_ids)
    save_matches(session, [m for m in result.updated_matches if m.id in moved])
    logger.info(
        "Bulk move to court %d for tournament %s: %d moved, %d failed",
        payload.court_number,
        tournament_id,
        len(result.moved_ids),
        len(result.failed_ids),
    )

    return BulkMoveResponse(
        moved_ids=result.moved_ids,
        failed_ids=result.failed_ids,
        matches=[MatchResponse.model_validate(m) for m in load_matches(session, tournament_id)],
    )


# ============================================================================
# Round swaps
# ============================================================================


@router.get("/tournaments/{tournament_id}/rounds/swap/validate", response_model=RoundSwapValidation)
def validate_round_swap_endpoint(
    tournament_id: str,
    round1: int = Query(..., description="Round number"),
    round2: int = Query(..., description="Round number"),
    session: Session = Depends(get_session),
) -> RoundSwapValidation:
    get_tournament_or_404(session, tournament_id)
    rounds = load_rounds(session, tournament_id)
    return validate_round_swap(
        _get_round_or_404(rounds, round1),
        _get_round_or_404(rounds, round2),
        load_matches(session, tournament_id),
    )


@router.post("/tournaments/{tournament_id}/rounds/swap", response_model=RoundSwapResponse)
def swap_rounds_endpoint(
    tournament_id: str,
    payload: RoundSwapRequest,
    session: Session = Depends(get_session),
) -> RoundSwapResponse:
    tournament = get_tournament_or_404(session, tournament_id)
    rounds = load_rounds(session, tournament_id)
    matches = load_matches(session, tournament_id)
    round1 = _get_round_or_404(rounds, payload.round1_number)
    round2 = _get_round_or_404(rounds, payload.round2_number)
    warnings = validate_round_swap(round1, round2, matches).warnings

    history = get_change_history(tournament_id)
    try:
        if payload.rebalance_courts:
            result = swap_rounds_with_court_rebalancing(
                round1, round2, matches, history, tournament.match_duration, tournament.court_count
            )
        else:
            result = swap_rounds(round1, round2, matches, history, tournament.match_duration)
    except RoundSwapError as e:
        raise HTTPException(status_code=400, detail=str(e))

    save_rounds(session, result.updated_rounds)
    save_matches(session, result.updated_matches)
    logger.info(
        "Swapped rounds %d and %d for tournament %s (rebalance=%s)",
        payload.round1_number,
        payload.round2_number,
        tournament_id,
        payload.rebalance_courts,
    )

    return RoundSwapResponse(
        rounds=[RoundResponse.model_validate(r) for r in load_rounds(session, tournament_id)],
        matches=[MatchResponse.model_validate(m) for m in load_matches(session, tournament_id)],
        warnings=warnings,
    )
