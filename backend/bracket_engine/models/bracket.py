from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_engine.models.bracket_entry import BracketEntry
    from bracket_engine.models.bracket_game import BracketGame
    from bracket_engine.models.event import Event

MIN_BRACKET_SIZE = 4
MAX_BRACKET_SIZE = 64


class BracketStatus(str, Enum):
    setup = "setup"
    in_progress = "in_progress"
    completed = "completed"


class EliminationType(str, Enum):
    single = "single"
    double = "double"


class Bracket(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    name: str
    bracket_size: int  # power of two, 4..64
    actual_team_count: Optional[int] = Field(default=None)
    elimination_type: EliminationType = Field(
        default=EliminationType.double, sa_column=Column(String, nullable=False)
    )
    status: BracketStatus = Field(default=BracketStatus.setup, sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    event: "Event" = Relationship(back_populates="brackets")
    entries: List["BracketEntry"] = Relationship(back_populates="bracket")
    games: List["BracketGame"] = Relationship(back_populates="bracket")
