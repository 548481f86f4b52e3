"""
Runtime: match status + result recording. No schedule mutation.
Completed matches become immutable to the schedule editing endpoints.
Round status follows its matches (any started -> active, all completed -> completed).
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from doubles_scheduler.database import get_session
from doubles_scheduler.models.match import MATCH_COMPLETED, MATCH_IN_PROGRESS, MATCH_SCHEDULED, MATCH_STATUSES, Match
from doubles_scheduler.models.round import ROUND_ACTIVE, ROUND_COMPLETED, Round
from doubles_scheduler.routes.schedule import MatchResponse
from doubles_scheduler.routes.tournaments import get_tournament_or_404

router = APIRouter()

# Allowed forward transitions
_NEXT_STATUS = {
    MATCH_SCHEDULED: (MATCH_IN_PROGRESS,),
    MATCH_IN_PROGRESS: (MATCH_COMPLETED,),
    MATCH_COMPLETED: (),
}


class MatchStatusUpdate(BaseModel):
    status: Optional[str] = None
    # {"team1_score", "team2_score", "winner_id", "end_reason"}; stored as given
    result: Optional[Dict[str, Any]] = None


def _validate_status_transition(current: str, new: str) -> None:
    if new not in MATCH_STATUSES:
        raise HTTPException(status_code=422, detail=f"Invalid status: {new}")
    if current == MATCH_COMPLETED:
        raise HTTPException(status_code=422, detail="completed is terminal; cannot change status")
    if new not in _NEXT_STATUS[current]:
        raise HTTPException(status_code=422, detail=f"Cannot change status from {current} to {new}")


def _sync_round_status(session: Session, match: Match) -> None:
    if not match.round_id:
        return
    round_ = session.get(Round, match.round_id)
    if not round_:
        return
    statuses = [m.status for m in session.exec(select(Match).where(Match.round_id == match.round_id)).all()]
    if statuses and all(s == MATCH_COMPLETED for s in statuses):
        round_.status = ROUND_COMPLETED
    elif any(s != MATCH_SCHEDULED for s in statuses):
        round_.status = ROUND_ACTIVE
    session.add(round_)


@router.patch("/tournaments/{tournament_id}/matches/{match_id}/status", response_model=MatchResponse)
def update_match_status(
    tournament_id: str,
    match_id: str,
    payload: MatchStatusUpdate,
    session: Session = Depends(get_session),
) -> MatchResponse:
    """Advance a match scheduled -> in-progress -> completed, optionally recording a result"""
    get_tournament_or_404(session, tournament_id)

    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")

    if match.status == MATCH_COMPLETED:
        raise HTTPException(status_code=422, detail="completed is terminal; cannot change match")

    if payload.status is not None and payload.status != match.status:
        _validate_status_transition(match.status, payload.status)
        match.status = payload.status
        if payload.status == MATCH_COMPLETED:
            match.completed_at = datetime.utcnow()

    if payload.result is not None:
        match.result = payload.result

    session.add(match)
    session.flush()
    _sync_round_status(session, match)
    session.commit()
    session.refresh(match)

    return MatchResponse.model_validate(match)
