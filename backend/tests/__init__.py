# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from bracket_engine.models.bracket import Bracket  # noqa: F401
from bracket_engine.models.bracket_entry import BracketEntry  # noqa: F401
from bracket_engine.models.bracket_game import BracketGame  # noqa: F401
from bracket_engine.models.event import Event  # noqa: F401
from bracket_engine.models.queue_item import QueueItem  # noqa: F401
from bracket_engine.models.seeding_ranking import SeedingRanking  # noqa: F401
from bracket_engine.models.seeding_score import SeedingScore  # noqa: F401
from bracket_engine.models.team import Team  # noqa: F401
