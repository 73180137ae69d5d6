"""
Entry Seeder: ranked teams -> one BracketEntry per seed position.

The team ranked k sits in seed_position k. Positions above the real team
count are byes. Round-1 pairings come from standard_seed_order(), which
puts the byes against the top seeds.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from bracket_engine.models.bracket import MAX_BRACKET_SIZE, MIN_BRACKET_SIZE, Bracket, BracketStatus
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.seeding_ranking import SeedingRanking
from bracket_engine.models.team import Team
from bracket_engine.services.errors import ConflictError, NotFoundError, ValidationError
from bracket_engine.utils.sql import atomic, get_for_update

logger = logging.getLogger(__name__)


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


def bracket_size_for(team_count: int) -> int:
    """clamp(next_power_of_two(team_count), 4, 64)"""
    return max(MIN_BRACKET_SIZE, min(MAX_BRACKET_SIZE, next_power_of_two(team_count)))


def is_valid_bracket_size(size: int) -> bool:
    return MIN_BRACKET_SIZE <= size <= MAX_BRACKET_SIZE and size & (size - 1) == 0


def standard_seed_order(n: int) -> List[int]:
    """Seed order for *n* positions; consecutive pairs meet in round 1.

    Each seed s of the half-size order is followed by its round-1 opponent
    n + 1 - s, so every pair sums to n + 1 and seeds 1 and 2 land in
    opposite halves:
      4  -> [1, 4, 2, 3]
      8  -> [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if n <= 2:
        return [1, 2][:n]
    return [seed for s in standard_seed_order(n // 2) for seed in (s, n + 1 - s)]


def order_teams(teams: Sequence[Team], ranks: Dict[int, int]) -> List[Team]:
    """Ranked teams first by seed_rank, then unranked teams by team_number."""
    return sorted(
        teams,
        key=lambda t: (ranks.get(t.id) is None, ranks.get(t.id, 0), t.team_number),
    )


def assign_seed_positions(team_ids: Sequence[int], bracket_size: int) -> List[Optional[int]]:
    """team_ids in seed order -> team id (or None for a bye) per position 1..bracket_size."""
    seeded: List[Optional[int]] = list(team_ids[:bracket_size])
    seeded.extend([None] * (bracket_size - len(seeded)))
    return seeded


def teams_in_other_brackets(session: Session, bracket: Bracket) -> Dict[int, Bracket]:
    """team_id -> the other bracket of the same event that already seeds it."""
    rows = session.exec(
        select(BracketEntry, Bracket)
        .join(Bracket, Bracket.id == BracketEntry.bracket_id)
        .where(
            Bracket.event_id == bracket.event_id,
            Bracket.id != bracket.id,
            BracketEntry.team_id.is_not(None),
        )
    ).all()
    return {entry.team_id: other for entry, other in rows}


def candidate_teams(
    session: Session,
    bracket: Bracket,
    team_ids: Optional[Sequence[int]] = None,
) -> List[Team]:
    """Teams eligible for this bracket, in seed order."""
    if team_ids is not None:
        teams = session.exec(select(Team).where(Team.id.in_(list(team_ids)))).all()
        found = {t.id for t in teams if t.event_id == bracket.event_id}
        missing = [tid for tid in team_ids if tid not in found]
        if missing:
            raise NotFoundError(f"Teams not found in event {bracket.event_id}: {missing}")
        teams = [t for t in teams if t.id in found]
        taken = teams_in_other_brackets(session, bracket)
        conflicts = [
            {
                "team_id": t.id,
                "team_name": t.label,
                "bracket_id": taken[t.id].id,
                "bracket_name": taken[t.id].name,
            }
            for t in sorted(teams, key=lambda t: t.team_number)
            if t.id in taken
        ]
        if conflicts:
            raise ConflictError("Teams are already assigned to another bracket", conflicts=conflicts)
    else:
        taken = teams_in_other_brackets(session, bracket)
        teams = [
            t
            for t in session.exec(select(Team).where(Team.event_id == bracket.event_id)).all()
            if t.id not in taken
        ]

    ranks = {
        r.team_id: r.seed_rank
        for r in session.exec(select(SeedingRanking).where(SeedingRanking.event_id == bracket.event_id)).all()
    }
    return order_teams(teams, ranks)


def delete_entries(session: Session, bracket_id: int) -> int:
    entries = session.exec(select(BracketEntry).where(BracketEntry.bracket_id == bracket_id)).all()
    for entry in entries:
        session.delete(entry)
    session.flush()
    return len(entries)


def seed_entries(
    session: Session,
    bracket: Bracket,
    force: bool = False,
    team_ids: Optional[Sequence[int]] = None,
) -> Dict[str, int]:
    """Write the bracket's entries. Caller owns the transaction."""
    from bracket_engine.services.bracket_builder import delete_games

    existing = session.exec(select(BracketEntry).where(BracketEntry.bracket_id == bracket.id)).all()
    if existing and not force:
        raise ConflictError(
            "Bracket already has entries. Use force=true to regenerate.",
            bracket_id=bracket.id,
            entries_count=len(existing),
        )
    if existing or bracket.status != BracketStatus.setup:
        games_deleted = delete_games(session, bracket.id)
        delete_entries(session, bracket.id)
        bracket.status = BracketStatus.setup
        logger.info(
            "Bracket %d reset for reseeding: %d entries and %d games removed",
            bracket.id,
            len(existing),
            games_deleted,
        )

    teams = candidate_teams(session, bracket, team_ids)
    if not teams:
        raise ValidationError("No teams available to seed this bracket", field="team_ids")

    limit = bracket.actual_team_count or bracket.bracket_size
    team_count = min(len(teams), limit, bracket.bracket_size)
    seeded = assign_seed_positions([t.id for t in teams[:team_count]], bracket.bracket_size)

    for position, team_id in enumerate(seeded, start=1):
        session.add(
            BracketEntry(
                bracket_id=bracket.id,
                seed_position=position,
                team_id=team_id,
                is_bye=team_id is None,
            )
        )
    session.add(bracket)
    session.flush()

    bye_count = bracket.bracket_size - team_count
    logger.info(
        "Seeded bracket %d: %d teams, %d byes (size %d)",
        bracket.id,
        team_count,
        bye_count,
        bracket.bracket_size,
    )
    return {
        "entries_created": bracket.bracket_size,
        "bye_count": bye_count,
        "team_count": team_count,
        "bracket_size": bracket.bracket_size,
    }


def generate_entries(
    session: Session,
    bracket_id: int,
    force: bool = False,
    team_ids: Optional[Sequence[int]] = None,
) -> Dict[str, int]:
    """Generate seed entries for a bracket. force=True replaces entries and any games."""
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        return seed_entries(session, bracket, force=force, team_ids=team_ids)


def list_entries(session: Session, bracket_id: int) -> List[BracketEntry]:
    return session.exec(
        select(BracketEntry).where(BracketEntry.bracket_id == bracket_id).order_by(BracketEntry.seed_position)
    ).all()
