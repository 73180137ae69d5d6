from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class SeedingScore(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("team_id", "round_number", name="uq_seeding_team_round"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    round_number: int
    score: Optional[int] = Field(default=None)  # null = round not played yet
    scored_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
