from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SeedingRanking(SQLModel, table=True):
    """Derived row; the whole set for an event is replaced on every recalculation."""

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    team_id: int = Field(foreign_key="team.id", unique=True)
    seed_average: Optional[float] = Field(default=None)
    raw_seed_score: float = Field(default=0.0)
    seed_rank: int
    tiebreaker_value: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
