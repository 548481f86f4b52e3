from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from doubles_scheduler.database import get_session
from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.tournament import (
    DEFAULT_COURT_COUNT,
    DEFAULT_MATCH_DURATION,
    DEFAULT_POINT_LIMIT,
    INDIVIDUAL_SIGNUP,
    SCORING_RULES,
    SIGNUP_MODES,
    Tournament,
)
from doubles_scheduler.services.schedule_store import load_participants
from doubles_scheduler.utils.time_slots import to_naive_utc

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    mode: str = INDIVIDUAL_SIGNUP
    court_count: int = DEFAULT_COURT_COUNT
    match_duration: int = DEFAULT_MATCH_DURATION
    point_limit: int = DEFAULT_POINT_LIMIT
    scoring_rule: str = "win-by-2"
    time_limit: bool = True
    scheduled_start: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v):
        if v not in SIGNUP_MODES:
            raise ValueError(f"mode must be one of {', '.join(SIGNUP_MODES)}")
        return v

    @field_validator("scoring_rule")
    @classmethod
    def validate_scoring_rule(cls, v):
        if v not in SCORING_RULES:
            raise ValueError(f"scoring_rule must be one of {', '.join(SCORING_RULES)}")
        return v

    @field_validator("court_count", "match_duration", "point_limit")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("scheduled_start")
    @classmethod
    def naive_start(cls, v):
        return to_naive_utc(v) if v is not None else v


class TournamentResponse(BaseModel):
    id: str
    name: str
    mode: str
    court_count: int
    match_duration: int
    point_limit: int
    scoring_rule: str
    time_limit: bool
    status: str
    scheduled_start: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParticipantsCreate(BaseModel):
    names: List[str]

    @field_validator("names")
    @classmethod
    def validate_names(cls, v):
        cleaned = [name.strip() for name in v]
        if not cleaned or any(not name for name in cleaned):
            raise ValueError("names must be non-empty")
        return cleaned


class ParticipantResponse(BaseModel):
    id: str
    tournament_id: str
    name: str
    position: int

    class Config:
        from_attributes = True


def get_tournament_or_404(session: Session, tournament_id: str) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.created_at)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: str, session: Session = Depends(get_session)):
    return get_tournament_or_404(session, tournament_id)


@router.post(
    "/tournaments/{tournament_id}/participants",
    response_model=List[ParticipantResponse],
    status_code=201,
)
def add_participants(tournament_id: str, payload: ParticipantsCreate, session: Session = Depends(get_session)):
    """Append participants in the given order. Pair-signup partners are consecutive names."""
    get_tournament_or_404(session, tournament_id)

    offset = len(load_participants(session, tournament_id))
    participants = [
        Participant(tournament_id=tournament_id, name=name, position=offset + i)
        for i, name in enumerate(payload.names)
    ]
    session.add_all(participants)
    session.commit()
    return load_participants(session, tournament_id)


@router.get("/tournaments/{tournament_id}/participants", response_model=List[ParticipantResponse])
def list_participants(tournament_id: str, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    return load_participants(session, tournament_id)
