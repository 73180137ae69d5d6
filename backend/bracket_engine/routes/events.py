from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from bracket_engine.database import DEFAULT_SEEDING_ROUNDS, get_session
from bracket_engine.models.event import Event

router = APIRouter()


class EventCreate(BaseModel):
    name: str
    seeding_rounds: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()

    @field_validator("seeding_rounds")
    @classmethod
    def validate_seeding_rounds(cls, v):
        if v is not None and v < 1:
            raise ValueError("seeding_rounds must be >= 1")
        return v


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    seeding_rounds: int
    created_at: datetime


@router.post("/events", response_model=EventResponse, status_code=201)
def create_event(event_data: EventCreate, session: Session = Depends(get_session)):
    """Create a new event"""
    event = Event(
        name=event_data.name,
        seeding_rounds=event_data.seeding_rounds or DEFAULT_SEEDING_ROUNDS,
    )
    session.add(event)
    session.commit()
    session.refresh(event)

    return event


@router.get("/events/{event_id}", response_model=EventResponse)
def get_event(event_id: int, session: Session = Depends(get_session)):
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event
