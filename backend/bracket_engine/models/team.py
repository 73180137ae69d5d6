from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_engine.models.event import Event


class Team(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("event_id", "team_number", name="uq_event_team_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    team_number: int  # Printed number, unique per event
    team_name: str
    display_name: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    event: "Event" = Relationship(back_populates="teams")

    @property
    def label(self) -> str:
        return self.display_name or self.team_name
