"""
Seeding API: record preliminary round scores and read the derived rankings.
Every recorded score re-ranks the whole event.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from bracket_engine.database import get_session
from bracket_engine.models.event import Event
from bracket_engine.services.errors import EngineError
from bracket_engine.services.seeding_rankings import (
    list_rankings,
    list_seeding_scores,
    recalculate_rankings,
    record_seeding_score,
)

router = APIRouter()


class SeedingScoreUpdate(BaseModel):
    team_id: int
    round_number: int
    score: Optional[int] = None  # null clears the round

    @field_validator("round_number")
    @classmethod
    def validate_round_number(cls, v):
        if v < 1:
            raise ValueError("round_number must be >= 1")
        return v

    @field_validator("score")
    @classmethod
    def validate_score(cls, v):
        if v is not None and v < 0:
            raise ValueError("score must be >= 0")
        return v


class SeedingScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    round_number: int
    score: Optional[int] = None
    scored_at: Optional[datetime] = None


class SeedingRankingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: int
    seed_rank: int
    seed_average: Optional[float] = None
    raw_seed_score: float
    tiebreaker_value: Optional[float] = None


@router.put("/events/{event_id}/seeding/scores", response_model=SeedingScoreResponse)
def put_seeding_score(event_id: int, payload: SeedingScoreUpdate, session: Session = Depends(get_session)):
    """Record (or clear) one seeding round for a team."""
    try:
        return record_seeding_score(session, event_id, payload.team_id, payload.round_number, payload.score)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("/events/{event_id}/seeding/scores", response_model=List[SeedingScoreResponse])
def get_seeding_scores(event_id: int, session: Session = Depends(get_session)):
    if not session.get(Event, event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    return list_seeding_scores(session, event_id)


@router.post("/events/{event_id}/seeding/rankings/recalculate", response_model=List[SeedingRankingResponse])
def post_recalculate_rankings(event_id: int, session: Session = Depends(get_session)):
    try:
        return recalculate_rankings(session, event_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("/events/{event_id}/seeding/rankings", response_model=List[SeedingRankingResponse])
def get_rankings(event_id: int, session: Session = Depends(get_session)):
    if not session.get(Event, event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    return list_rankings(session, event_id)
