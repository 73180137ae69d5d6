"""
Match queue API: the event's ordered call-up list.
Populate endpoints replace the whole queue; every other mutation keeps positions dense (1..N).
"""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from bracket_engine.database import get_session
from bracket_engine.models.queue_item import QueueStatus, QueueType
from bracket_engine.services import queue_service
from bracket_engine.services.errors import EngineError

router = APIRouter()


class QueueItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    queue_type: str
    bracket_game_id: Optional[int] = None
    seeding_team_id: Optional[int] = None
    seeding_round: Optional[int] = None
    queue_position: int
    status: str
    table_number: Optional[int] = None
    called_at: Optional[datetime] = None


class QueueItemCreate(BaseModel):
    queue_type: QueueType
    bracket_game_id: Optional[int] = None
    seeding_team_id: Optional[int] = None
    seeding_round: Optional[int] = None
    table_number: Optional[int] = None


class PopulateFromBracket(BaseModel):
    bracket_id: int


class QueuePosition(BaseModel):
    id: int
    queue_position: int

    @field_validator("queue_position")
    @classmethod
    def validate_position(cls, v):
        if v < 1:
            raise ValueError("queue_position must be >= 1")
        return v


class QueueReorder(BaseModel):
    items: List[QueuePosition]


class QueueMove(BaseModel):
    direction: str

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v):
        if v not in ("up", "down"):
            raise ValueError("direction must be 'up' or 'down'")
        return v


class QueueCall(BaseModel):
    table_number: Optional[int] = None


class QueueItemUpdate(BaseModel):
    status: Optional[QueueStatus] = None
    table_number: Optional[int] = None


@router.get("/events/{event_id}/queue", response_model=List[QueueItemResponse])
def get_queue(
    event_id: int,
    status: Optional[QueueStatus] = Query(None),
    queue_type: Optional[QueueType] = Query(None),
    session: Session = Depends(get_session),
):
    try:
        return queue_service.list_queue(session, event_id, status=status, queue_type=queue_type)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/events/{event_id}/queue", response_model=QueueItemResponse, status_code=201)
def add_queue_item(event_id: int, payload: QueueItemCreate, session: Session = Depends(get_session)):
    try:
        return queue_service.add_queue_item(
            session,
            event_id,
            payload.queue_type,
            bracket_game_id=payload.bracket_game_id,
            seeding_team_id=payload.seeding_team_id,
            seeding_round=payload.seeding_round,
            table_number=payload.table_number,
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/events/{event_id}/queue/populate-from-bracket")
def populate_from_bracket(
    event_id: int, payload: PopulateFromBracket, session: Session = Depends(get_session)
) -> Dict[str, int]:
    """Replace the queue with the bracket's ready games."""
    try:
        return queue_service.populate_from_bracket(session, event_id, payload.bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/events/{event_id}/queue/populate-from-seeding")
def populate_from_seeding(event_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    """Replace the queue with every seeding round still missing a score."""
    try:
        return queue_service.populate_from_seeding(session, event_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/events/{event_id}/queue/reorder", response_model=List[QueueItemResponse])
def reorder_queue(event_id: int, payload: QueueReorder, session: Session = Depends(get_session)):
    try:
        return queue_service.reorder_queue(
            session,
            event_id,
            [(item.id, item.queue_position) for item in payload.items],
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/queue/{item_id}/move", response_model=List[QueueItemResponse])
def move_queue_item(item_id: int, payload: QueueMove, session: Session = Depends(get_session)):
    try:
        return queue_service.move_queue_item(session, item_id, payload.direction)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/queue/{item_id}/call", response_model=QueueItemResponse)
def call_queue_item(item_id: int, payload: Optional[QueueCall] = None, session: Session = Depends(get_session)):
    try:
        return queue_service.call_queue_item(session, item_id, table_number=payload.table_number if payload else None)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/queue/{item_id}/uncall", response_model=QueueItemResponse)
def uncall_queue_item(item_id: int, session: Session = Depends(get_session)):
    try:
        return queue_service.uncall_queue_item(session, item_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.patch("/queue/{item_id}", response_model=QueueItemResponse)
def update_queue_item(item_id: int, payload: QueueItemUpdate, session: Session = Depends(get_session)):
    try:
        return queue_service.update_queue_item(
            session,
            item_id,
            status=payload.status,
            table_number=payload.table_number,
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.delete("/queue/{item_id}", status_code=204)
def delete_queue_item(item_id: int, session: Session = Depends(get_session)):
    try:
        queue_service.remove_queue_item(session, item_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
    return None
