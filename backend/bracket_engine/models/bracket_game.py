from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_engine.models.bracket import Bracket


class GameStatus(str, Enum):
    pending = "pending"  # waiting on one or both team slots
    ready = "ready"  # both teams known, no result yet
    in_progress = "in_progress"
    completed = "completed"
    bye = "bye"  # decided without a played game


class BracketSide(str, Enum):
    winners = "winners"
    losers = "losers"
    finals = "finals"


class Slot(str, Enum):
    team1 = "team1"
    team2 = "team2"


TERMINAL_GAME_STATUSES = (GameStatus.completed, GameStatus.bye)


class BracketGame(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("bracket_id", "game_number", name="uq_bracket_game_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    bracket_id: int = Field(foreign_key="bracket.id", index=True)
    game_number: int  # unique across the whole bracket
    round_number: int  # round within bracket_side
    round_name: str
    bracket_side: BracketSide = Field(sa_column=Column(String, nullable=False))

    # Team slots (nullable - resolved from the *_source references)
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team1_source: Optional[str] = Field(default=None)  # "seed:N" | "winner:G" | "loser:G"
    team2_source: Optional[str] = Field(default=None)

    status: GameStatus = Field(default=GameStatus.pending, sa_column=Column(String, nullable=False))
    winner_id: Optional[int] = Field(default=None, foreign_key="team.id")
    loser_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team1_score: Optional[int] = Field(default=None)
    team2_score: Optional[int] = Field(default=None)

    # Advancement graph: plain ids into the same bracket
    winner_advances_to_id: Optional[int] = Field(default=None, foreign_key="bracketgame.id")
    loser_advances_to_id: Optional[int] = Field(default=None, foreign_key="bracketgame.id")
    winner_slot: Optional[Slot] = Field(default=None, sa_column=Column(String, nullable=True))
    loser_slot: Optional[Slot] = Field(default=None, sa_column=Column(String, nullable=True))
    is_grand_final: bool = Field(default=False)
    is_reset_game: bool = Field(default=False)

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    bracket: "Bracket" = Relationship(back_populates="games")

    def team_in(self, slot: Slot) -> Optional[int]:
        return self.team1_id if slot == Slot.team1 else self.team2_id

    def set_team(self, slot: Slot, team_id: Optional[int]) -> None:
        if slot == Slot.team1:
            self.team1_id = team_id
        else:
            self.team2_id = team_id

    def source_of(self, slot: Slot) -> Optional[str]:
        return self.team1_source if slot == Slot.team1 else self.team2_source
