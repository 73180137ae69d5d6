from bracket_engine.models.bracket import Bracket, BracketStatus, EliminationType
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.bracket_game import BracketGame, BracketSide, GameStatus, Slot
from bracket_engine.models.event import Event
from bracket_engine.models.queue_item import QueueItem, QueueStatus, QueueType
from bracket_engine.models.seeding_ranking import SeedingRanking
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.models.team import Team

__all__ = [
    "Event",
    "Team",
    "SeedingScore",
    "SeedingRanking",
    "Bracket",
    "BracketStatus",
    "EliminationType",
    "BracketEntry",
    "BracketGame",
    "BracketSide",
    "GameStatus",
    "Slot",
    "QueueItem",
    "QueueStatus",
    "QueueType",
]
