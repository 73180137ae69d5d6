"""
Seeding rankings: turn raw seeding-round scores into a ranked team list.

seed_average    mean of the two best round scores (the single score if only one)
raw_seed_score  0.75 * standing component + 0.25 * (seed_average / best seed_average)
seed_rank       1-based ordinal by raw_seed_score, tiebreaker, then team_number

Teams without any recorded score rank after every scored team with a
raw_seed_score of 0. A recalculation always replaces the event's whole ranking set,
because one edited score can move every other team.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from bracket_engine.models.event import Event
from bracket_engine.models.seeding_ranking import SeedingRanking
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.models.team import Team
from bracket_engine.services.errors import NotFoundError, ValidationError
from bracket_engine.utils.sql import atomic

logger = logging.getLogger(__name__)

RANK_WEIGHT = 0.75
SCORE_WEIGHT = 0.25


@dataclass
class TeamScores:
    """Scores for one team, in round order. None = round not played."""

    team_id: int
    team_number: int
    scores: List[Optional[int]] = field(default_factory=list)


@dataclass
class RankingRow:
    team_id: int
    team_number: int
    seed_average: Optional[float]
    tiebreaker_value: Optional[float]
    raw_seed_score: float = 0.0
    seed_rank: int = 0


def _played_desc(scores: Sequence[Optional[int]]) -> List[int]:
    # sorted() is stable, so equal scores keep round order
    return sorted((s for s in scores if s is not None), reverse=True)


def seed_average(scores: Sequence[Optional[int]]) -> Optional[float]:
    played = _played_desc(scores)
    if not played:
        return None
    best = played[:2]
    return sum(best) / len(best)


def tiebreaker_value(scores: Sequence[Optional[int]]) -> Optional[float]:
    """Third-best score when three rounds are in, otherwise the sum of what was played."""
    played = _played_desc(scores)
    if not played:
        return None
    if len(played) >= 3:
        return float(played[2])
    return float(sum(played))


def compute_rankings(teams: Sequence[TeamScores]) -> List[RankingRow]:
    """Pure ranking calculation. Returns rows ordered by seed_rank."""
    rows = [
        RankingRow(
            team_id=t.team_id,
            team_number=t.team_number,
            seed_average=seed_average(t.scores),
            tiebreaker_value=tiebreaker_value(t.scores),
        )
        for t in teams
    ]
    scored = [r for r in rows if r.seed_average is not None]
    unscored = [r for r in rows if r.seed_average is None]

    standing = sorted(
        scored,
        key=lambda r: (-r.seed_average, -(r.tiebreaker_value or 0.0), r.team_number),
    )
    n = len(standing)
    best_average = max((r.seed_average for r in standing), default=0.0)
    for position, row in enumerate(standing, start=1):
        rank_component = (n - position + 1) / n
        score_ratio = row.seed_average / best_average if best_average > 0 else 0.0
        row.raw_seed_score = RANK_WEIGHT * rank_component + SCORE_WEIGHT * score_ratio

    ordered = sorted(
        scored,
        key=lambda r: (-r.raw_seed_score, -(r.tiebreaker_value or 0.0), r.team_number),
    )
    ordered.extend(sorted(unscored, key=lambda r: r.team_number))
    for rank, row in enumerate(ordered, start=1):
        row.seed_rank = rank
    return ordered


def load_team_scores(session: Session, event_id: int) -> List[TeamScores]:
    teams = session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.team_number)).all()
    by_team: Dict[int, TeamScores] = {
        t.id: TeamScores(team_id=t.id, team_number=t.team_number) for t in teams
    }
    if not by_team:
        return []
    scores = session.exec(
        select(SeedingScore)
        .where(SeedingScore.team_id.in_(list(by_team.keys())))
        .order_by(SeedingScore.team_id, SeedingScore.round_number)
    ).all()
    for score in scores:
        by_team[score.team_id].scores.append(score.score)
    return list(by_team.values())


def replace_rankings(session: Session, event_id: int) -> List[SeedingRanking]:
    """Recompute and swap in the event's ranking set. Caller owns the transaction."""
    rows = compute_rankings(load_team_scores(session, event_id))

    existing = session.exec(select(SeedingRanking).where(SeedingRanking.event_id == event_id)).all()
    for ranking in existing:
        session.delete(ranking)
    session.flush()

    rankings = [
        SeedingRanking(
            event_id=event_id,
            team_id=row.team_id,
            seed_average=row.seed_average,
            raw_seed_score=row.raw_seed_score,
            seed_rank=row.seed_rank,
            tiebreaker_value=row.tiebreaker_value,
        )
        for row in rows
    ]
    session.add_all(rankings)
    session.flush()
    return rankings


def recalculate_rankings(session: Session, event_id: int) -> List[SeedingRanking]:
    """Recalculate seeding rankings for an event. Idempotent."""
    with atomic(session):
        if not session.get(Event, event_id):
            raise NotFoundError("Event not found")
        rankings = replace_rankings(session, event_id)
        ranked = sum(1 for r in rankings if r.seed_average is not None)

    logger.info(
        "Rankings recalculated for event %d: %d ranked, %d without scores",
        event_id,
        ranked,
        len(rankings) - ranked,
    )
    return list_rankings(session, event_id)


def list_rankings(session: Session, event_id: int) -> List[SeedingRanking]:
    return session.exec(
        select(SeedingRanking).where(SeedingRanking.event_id == event_id).order_by(SeedingRanking.seed_rank)
    ).all()


def list_seeding_scores(session: Session, event_id: int) -> List[SeedingScore]:
    return session.exec(
        select(SeedingScore)
        .join(Team, Team.id == SeedingScore.team_id)
        .where(Team.event_id == event_id)
        .order_by(Team.team_number, SeedingScore.round_number)
    ).all()


def record_seeding_score(
    session: Session,
    event_id: int,
    team_id: int,
    round_number: int,
    score: Optional[int],
) -> SeedingScore:
    """
    Upsert one seeding round for a team and re-rank the event in the same transaction.

    A recorded score closes the matching seeding queue item; clearing a score
    (score=None) leaves the queue alone.
    """
    from bracket_engine.services import queue_service

    with atomic(session):
        event = session.get(Event, event_id)
        if not event:
            raise NotFoundError("Event not found")
        team = session.get(Team, team_id)
        if not team or team.event_id != event_id:
            raise NotFoundError(f"Team {team_id} not found in event {event_id}")
        if round_number < 1 or round_number > event.seeding_rounds:
            raise ValidationError(
                f"round_number must be between 1 and {event.seeding_rounds}",
                field="round_number",
            )
        if score is not None and score < 0:
            raise ValidationError("score must be >= 0", field="score")

        row = session.exec(
            select(SeedingScore).where(
                SeedingScore.team_id == team_id,
                SeedingScore.round_number == round_number,
            )
        ).first()
        if row is None:
            row = SeedingScore(team_id=team_id, round_number=round_number)
        row.score = score
        row.scored_at = datetime.utcnow() if score is not None else None
        session.add(row)
        session.flush()

        if score is not None:
            queue_service.mark_seeding_completed(session, event_id, team_id, round_number)
        replace_rankings(session, event_id)

    logger.info(
        "Seeding score recorded: event=%d team=%d round=%d score=%s",
        event_id,
        team_id,
        round_number,
        score,
    )
    session.refresh(row)
    return row
