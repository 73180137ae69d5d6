from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class QueueType(str, Enum):
    seeding = "seeding"
    bracket = "bracket"


class QueueStatus(str, Enum):
    queued = "queued"
    called = "called"
    in_progress = "in_progress"
    completed = "completed"
    skipped = "skipped"


class QueueItem(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("event_id", "queue_position", name="uq_event_queue_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    queue_type: QueueType = Field(sa_column=Column(String, nullable=False))

    # bracket items reference a game; seeding items reference (team, round)
    bracket_game_id: Optional[int] = Field(default=None, foreign_key="bracketgame.id")
    seeding_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    seeding_round: Optional[int] = Field(default=None)

    queue_position: int  # dense 1..N per event
    status: QueueStatus = Field(default=QueueStatus.queued, sa_column=Column(String, nullable=False))
    table_number: Optional[int] = Field(default=None)
    called_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
