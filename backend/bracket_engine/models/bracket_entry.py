from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_engine.models.bracket import Bracket


class BracketEntry(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("bracket_id", "seed_position", name="uq_bracket_seed_position"),
        SAUniqueConstraint("bracket_id", "team_id", name="uq_bracket_team"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    bracket_id: int = Field(foreign_key="bracket.id", index=True)
    seed_position: int  # 1..bracket_size
    team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    is_bye: bool = Field(default=False)  # always equals team_id is None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    bracket: "Bracket" = Relationship(back_populates="entries")
