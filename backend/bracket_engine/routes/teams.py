"""
Team Management API Routes
Registers teams within an event. Teams are immutable once seeded, apart from display fields.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from bracket_engine.database import get_session
from bracket_engine.models.event import Event
from bracket_engine.models.team import Team

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    team_number: int
    team_name: str
    display_name: Optional[str] = None

    @field_validator("team_number")
    @classmethod
    def validate_team_number(cls, v):
        if v < 1:
            raise ValueError("team_number must be >= 1")
        return v

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v):
        if not v or not v.strip():
            raise ValueError("team_name cannot be empty")
        return v.strip()


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    team_number: int
    team_name: str
    display_name: Optional[str] = None
    created_at: datetime


# ============================================================================
# Team Endpoints
# ============================================================================


@router.get("/events/{event_id}/teams", response_model=List[TeamResponse])
def get_teams(event_id: int, session: Session = Depends(get_session)):
    """Get all teams for an event, ordered by team_number."""
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    return session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.team_number)).all()


@router.post("/events/{event_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(event_id: int, request: TeamCreateRequest, session: Session = Depends(get_session)):
    """
    Create a new team for an event.

    Constraints:
    - (event_id, team_number) must be unique
    """
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    team = Team(
        event_id=event_id,
        team_number=request.team_number,
        team_name=request.team_name,
        display_name=request.display_name,
    )

    try:
        session.add(team)
        session.commit()
        session.refresh(team)
        return team
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=409,
            detail=f"Team number {request.team_number} already exists for this event",
        )
