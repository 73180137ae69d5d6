"""
Bracket lifecycle: create, seed, build, start, inspect and remove brackets.

Creation with an explicit team list seeds and builds the bracket in one
transaction, so a caller never sees a half-built bracket.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from bracket_engine.models.bracket import MAX_BRACKET_SIZE, Bracket, BracketStatus, EliminationType
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.bracket_game import BracketGame
from bracket_engine.models.event import Event
from bracket_engine.services import bracket_builder, entry_seeder
from bracket_engine.services.advancement_service import BracketGraph
from bracket_engine.services.errors import NotFoundError, StateError, ValidationError
from bracket_engine.utils.sql import atomic, get_for_update

logger = logging.getLogger(__name__)


def _validate_counts(bracket_size: int, actual_team_count: Optional[int]) -> None:
    if not entry_seeder.is_valid_bracket_size(bracket_size):
        raise ValidationError("bracket_size must be a power of two between 4 and 64", field="bracket_size")
    if actual_team_count is not None:
        if actual_team_count < 1:
            raise ValidationError("actual_team_count must be positive", field="actual_team_count")
        if actual_team_count > bracket_size:
            raise ValidationError("actual_team_count cannot exceed bracket_size", field="actual_team_count")


def create_bracket(
    session: Session,
    event_id: int,
    name: str,
    bracket_size: Optional[int] = None,
    team_ids: Optional[Sequence[int]] = None,
    actual_team_count: Optional[int] = None,
    elimination_type: EliminationType = EliminationType.double,
) -> Bracket:
    """
    Create a bracket for an event.

    With team_ids the size defaults to clamp(next_power_of_two(len(team_ids)), 4, 64),
    and entries plus games are generated right away. Teams already seeded in
    another bracket of the event produce a ConflictError listing each overlap.
    """
    if not name or not name.strip():
        raise ValidationError("name is required", field="name")
    if team_ids is not None:
        if not team_ids:
            raise ValidationError("team_ids cannot be empty", field="team_ids")
        if len(set(team_ids)) != len(team_ids):
            raise ValidationError("team_ids contains duplicates", field="team_ids")
        if len(team_ids) > MAX_BRACKET_SIZE:
            raise ValidationError("a bracket holds at most 64 teams", field="team_ids")
        if bracket_size is None:
            bracket_size = entry_seeder.bracket_size_for(len(team_ids))
        if len(team_ids) > bracket_size:
            raise ValidationError("more teams than bracket_size", field="team_ids")
    elif bracket_size is None:
        raise ValidationError("bracket_size is required without team_ids", field="bracket_size")
    _validate_counts(bracket_size, actual_team_count)

    with atomic(session):
        if not session.get(Event, event_id):
            raise NotFoundError("Event not found")
        bracket = Bracket(
            event_id=event_id,
            name=name.strip(),
            bracket_size=bracket_size,
            actual_team_count=actual_team_count,
            elimination_type=EliminationType(elimination_type),
        )
        session.add(bracket)
        session.flush()

        if team_ids is not None:
            entry_seeder.seed_entries(session, bracket, team_ids=team_ids)
            bracket_builder.build_games(session, bracket)

    logger.info(
        "Bracket %d '%s' created for event %d (size %d, %s elimination)",
        bracket.id,
        bracket.name,
        event_id,
        bracket.bracket_size,
        EliminationType(bracket.elimination_type).value,
    )
    session.refresh(bracket)
    return bracket


def get_bracket(session: Session, bracket_id: int) -> Bracket:
    bracket = session.get(Bracket, bracket_id)
    if not bracket:
        raise NotFoundError("Bracket not found")
    return bracket


def list_brackets(session: Session, event_id: int) -> List[Bracket]:
    if not session.get(Event, event_id):
        raise NotFoundError("Event not found")
    return session.exec(select(Bracket).where(Bracket.event_id == event_id).order_by(Bracket.id)).all()


def update_bracket(
    session: Session,
    bracket_id: int,
    name: Optional[str] = None,
    actual_team_count: Optional[int] = None,
) -> Bracket:
    """Rename a bracket or change its team count override (setup only)."""
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        if name is not None:
            if not name.strip():
                raise ValidationError("name cannot be empty", field="name")
            bracket.name = name.strip()
        if actual_team_count is not None:
            if bracket.status != BracketStatus.setup:
                raise StateError("actual_team_count can only change while the bracket is in setup")
            _validate_counts(bracket.bracket_size, actual_team_count)
            bracket.actual_team_count = actual_team_count
        session.add(bracket)

    session.refresh(bracket)
    return bracket


def delete_bracket(session: Session, bracket_id: int) -> Dict[str, int]:
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        games = bracket_builder.delete_games(session, bracket_id)
        entries = entry_seeder.delete_entries(session, bracket_id)
        session.delete(bracket)

    logger.info("Bracket %d deleted (%d entries, %d games)", bracket_id, entries, games)
    return {"entries_deleted": entries, "games_deleted": games}


def start_bracket(session: Session, bracket_id: int) -> Bracket:
    """setup -> in_progress. Requires generated games."""
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        if bracket.status != BracketStatus.setup:
            raise StateError(f"Bracket is {bracket.status}, only brackets in setup can start")
        graph = BracketGraph.load(session, bracket)
        if not graph.games:
            raise StateError("Generate games before starting the bracket")
        bracket.status = BracketStatus.in_progress
        # a bracket with a single real team is decided by byes alone
        graph.sync_bracket_status()
        session.add(bracket)

    logger.info("Bracket %d started", bracket_id)
    session.refresh(bracket)
    return bracket


def get_bracket_detail(session: Session, bracket_id: int) -> Dict:
    """{bracket, entries[], games[]} in seed_position / game_number order."""
    bracket = get_bracket(session, bracket_id)
    entries = session.exec(
        select(BracketEntry).where(BracketEntry.bracket_id == bracket_id).order_by(BracketEntry.seed_position)
    ).all()
    games = session.exec(
        select(BracketGame).where(BracketGame.bracket_id == bracket_id).order_by(BracketGame.game_number)
    ).all()
    return {"bracket": bracket, "entries": entries, "games": games}


def get_bracket_template(
    bracket_size: int,
    elimination_type: EliminationType = EliminationType.double,
) -> List[Dict]:
    """The game plan the builder would produce, without touching the database."""
    return [spec.to_dict() for spec in bracket_builder.build_bracket_plan(bracket_size, elimination_type)]
