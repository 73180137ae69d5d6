"""
Bracket API Routes
Create brackets, generate entries and games, start play and read the game graph.
Regeneration (force=true) is destructive; callers confirm before sending it.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from bracket_engine.database import get_session
from bracket_engine.models.bracket import EliminationType
from bracket_engine.services import bracket_builder, bracket_service, entry_seeder
from bracket_engine.services.errors import EngineError

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class BracketCreate(BaseModel):
    event_id: int
    name: str
    bracket_size: Optional[int] = None
    team_ids: Optional[List[int]] = None
    actual_team_count: Optional[int] = None
    elimination_type: EliminationType = EliminationType.double

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()


class BracketUpdate(BaseModel):
    name: Optional[str] = None
    actual_team_count: Optional[int] = None


class EntryGenerateRequest(BaseModel):
    team_ids: Optional[List[int]] = None


class BracketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    name: str
    bracket_size: int
    actual_team_count: Optional[int] = None
    elimination_type: str
    status: str
    created_at: datetime
    updated_at: datetime


class BracketEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    seed_position: int
    team_id: Optional[int] = None
    is_bye: bool


class BracketGameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bracket_id: int
    game_number: int
    round_number: int
    round_name: str
    bracket_side: str
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    team1_source: Optional[str] = None
    team2_source: Optional[str] = None
    status: str
    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    winner_advances_to_id: Optional[int] = None
    winner_slot: Optional[str] = None
    loser_advances_to_id: Optional[int] = None
    loser_slot: Optional[str] = None
    is_grand_final: bool = False
    is_reset_game: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BracketDetailResponse(BaseModel):
    bracket: BracketResponse
    entries: List[BracketEntryResponse]
    games: List[BracketGameResponse]


# ============================================================================
# Bracket Endpoints
# ============================================================================


@router.get("/events/{event_id}/brackets", response_model=List[BracketResponse])
def list_brackets(event_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.list_brackets(session, event_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/brackets", response_model=BracketResponse, status_code=201)
def create_bracket(payload: BracketCreate, session: Session = Depends(get_session)):
    """
    Create a bracket.

    With team_ids the bracket is seeded and built immediately. Teams already in
    another bracket of the event return 409 with detail.conflicts listing
    {team_id, team_name, bracket_id, bracket_name} for each overlap.
    """
    try:
        return bracket_service.create_bracket(
            session,
            payload.event_id,
            payload.name,
            bracket_size=payload.bracket_size,
            team_ids=payload.team_ids,
            actual_team_count=payload.actual_team_count,
            elimination_type=payload.elimination_type,
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("/brackets/{bracket_id}", response_model=BracketDetailResponse)
def get_bracket(bracket_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.get_bracket_detail(session, bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.patch("/brackets/{bracket_id}", response_model=BracketResponse)
def update_bracket(bracket_id: int, payload: BracketUpdate, session: Session = Depends(get_session)):
    try:
        return bracket_service.update_bracket(
            session,
            bracket_id,
            name=payload.name,
            actual_team_count=payload.actual_team_count,
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.delete("/brackets/{bracket_id}")
def delete_bracket(bracket_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.delete_bracket(session, bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/brackets/{bracket_id}/entries/generate")
def generate_entries(
    bracket_id: int,
    payload: Optional[EntryGenerateRequest] = None,
    force: bool = Query(False),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    """Seed the bracket from event rankings (or the given team_ids). 409 when entries exist and force is false."""
    team_ids = payload.team_ids if payload else None
    try:
        return entry_seeder.generate_entries(session, bracket_id, force=force, team_ids=team_ids)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/brackets/{bracket_id}/games/generate")
def generate_games(
    bracket_id: int,
    force: bool = Query(False),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    try:
        return bracket_builder.generate_games(session, bracket_id, force=force)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/brackets/{bracket_id}/start", response_model=BracketResponse)
def start_bracket(bracket_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.start_bracket(session, bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("/brackets/{bracket_id}/games", response_model=List[BracketGameResponse])
def list_games(bracket_id: int, session: Session = Depends(get_session)):
    try:
        bracket_service.get_bracket(session, bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
    return bracket_builder.list_games(session, bracket_id)


@router.get("/bracket-templates")
def get_bracket_template(
    bracket_size: int = Query(...),
    elimination_type: EliminationType = Query(EliminationType.double),
) -> List[Dict[str, Any]]:
    """Preview the game plan for a size and elimination type. Nothing is persisted."""
    try:
        return bracket_service.get_bracket_template(bracket_size, elimination_type)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
