"""
Match Queue Manager: an event-wide call-up list mixing seeding rounds and bracket games.

queue_position is always a dense 1..N sequence per event. Every mutation that
moves or removes items renumbers the whole queue in the same transaction. Rows
are parked on negative positions first, so the (event_id, queue_position)
unique constraint holds at every statement.

Every mutation locks the event row before it reads the queue, so concurrent
appends and reorders of one event run one after the other. Events are always
locked before queue items.

Status transitions:
    queued      -> called, skipped
    called      -> queued, in_progress, completed, skipped
    in_progress -> completed, skipped
    skipped     -> queued
    completed   (terminal)
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session, func, select

from bracket_engine.models.bracket import Bracket
from bracket_engine.models.bracket_game import BracketGame, GameStatus
from bracket_engine.models.event import Event
from bracket_engine.models.queue_item import QueueItem, QueueStatus, QueueType
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.models.team import Team
from bracket_engine.services.errors import ConflictError, NotFoundError, StateError, ValidationError
from bracket_engine.utils.sql import atomic, get_for_update, scalar_int

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, Tuple[QueueStatus, ...]] = {
    QueueStatus.queued: (QueueStatus.called, QueueStatus.skipped),
    QueueStatus.called: (QueueStatus.queued, QueueStatus.in_progress, QueueStatus.completed, QueueStatus.skipped),
    QueueStatus.in_progress: (QueueStatus.completed, QueueStatus.skipped),
    QueueStatus.skipped: (QueueStatus.queued,),
    QueueStatus.completed: (),
}


def _event_items(session: Session, event_id: int) -> List[QueueItem]:
    return session.exec(
        select(QueueItem).where(QueueItem.event_id == event_id).order_by(QueueItem.queue_position)
    ).all()


def _require_event(session: Session, event_id: int, lock: bool = False) -> Event:
    event = get_for_update(session, Event, event_id) if lock else session.get(Event, event_id)
    if not event:
        raise NotFoundError("Event not found")
    return event


def _lock_events(session: Session, event_ids: Iterable[int]) -> None:
    for event_id in sorted(set(event_ids)):
        get_for_update(session, Event, event_id)


def _lock_events_for_games(session: Session, game_ids: Sequence[int]) -> None:
    event_ids = session.exec(
        select(QueueItem.event_id).where(QueueItem.bracket_game_id.in_(list(game_ids))).distinct()
    ).all()
    _lock_events(session, event_ids)


def _require_item(session: Session, item_id: int) -> QueueItem:
    """Lock the item's event, then the item."""
    event_id = session.exec(select(QueueItem.event_id).where(QueueItem.id == item_id)).first()
    if event_id is None:
        raise NotFoundError("Queue item not found")
    _lock_events(session, [event_id])
    item = get_for_update(session, QueueItem, item_id)
    if not item:
        raise NotFoundError("Queue item not found")
    return item


def renumber(session: Session, items: Sequence[QueueItem]) -> None:
    """Assign positions 1..N in the given order."""
    for i, item in enumerate(items, start=1):
        item.queue_position = -i
        session.add(item)
    session.flush()
    for i, item in enumerate(items, start=1):
        item.queue_position = i
    session.flush()


def _clear_queue(session: Session, event_id: int) -> int:
    items = _event_items(session, event_id)
    for item in items:
        session.delete(item)
    session.flush()
    return len(items)


def _next_position(session: Session, event_id: int) -> int:
    current = session.exec(select(func.max(QueueItem.queue_position)).where(QueueItem.event_id == event_id)).first()
    return scalar_int(current) + 1


def list_queue(
    session: Session,
    event_id: int,
    status: Optional[QueueStatus] = None,
    queue_type: Optional[QueueType] = None,
) -> List[QueueItem]:
    _require_event(session, event_id)
    statement = select(QueueItem).where(QueueItem.event_id == event_id)
    if status is not None:
        statement = statement.where(QueueItem.status == QueueStatus(status).value)
    if queue_type is not None:
        statement = statement.where(QueueItem.queue_type == QueueType(queue_type).value)
    return session.exec(statement.order_by(QueueItem.queue_position)).all()


def populate_from_bracket(session: Session, event_id: int, bracket_id: int) -> Dict[str, int]:
    """Replace the event's queue with the bracket's ready games, in game_number order."""
    with atomic(session):
        _require_event(session, event_id, lock=True)
        bracket = session.get(Bracket, bracket_id)
        if not bracket or bracket.event_id != event_id:
            raise NotFoundError(f"Bracket {bracket_id} not found in event {event_id}")

        removed = _clear_queue(session, event_id)
        games = session.exec(
            select(BracketGame)
            .where(
                BracketGame.bracket_id == bracket_id,
                BracketGame.status == GameStatus.ready.value,
            )
            .order_by(BracketGame.game_number)
        ).all()
        for position, game in enumerate(games, start=1):
            session.add(
                QueueItem(
                    event_id=event_id,
                    queue_type=QueueType.bracket,
                    bracket_game_id=game.id,
                    queue_position=position,
                )
            )
        session.flush()

    logger.info(
        "Queue for event %d populated from bracket %d: %d created, %d removed",
        event_id,
        bracket_id,
        len(games),
        removed,
    )
    return {"created": len(games), "removed": removed}


def populate_from_seeding(session: Session, event_id: int) -> Dict[str, int]:
    """Replace the event's queue with every unscored (team, round), by team_number then round."""
    with atomic(session):
        event = _require_event(session, event_id, lock=True)
        removed = _clear_queue(session, event_id)

        teams = session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.team_number)).all()
        scored = set()
        if teams:
            rows = session.exec(
                select(SeedingScore).where(
                    SeedingScore.team_id.in_([t.id for t in teams]),
                    SeedingScore.score.is_not(None),
                )
            ).all()
            scored = {(s.team_id, s.round_number) for s in rows}

        position = 0
        for team in teams:
            for round_number in range(1, event.seeding_rounds + 1):
                if (team.id, round_number) in scored:
                    continue
                position += 1
                session.add(
                    QueueItem(
                        event_id=event_id,
                        queue_type=QueueType.seeding,
                        seeding_team_id=team.id,
                        seeding_round=round_number,
                        queue_position=position,
                    )
                )
        session.flush()

    logger.info("Queue for event %d populated from seeding: %d created, %d removed", event_id, position, removed)
    return {"created": position, "removed": removed}


def add_queue_item(
    session: Session,
    event_id: int,
    queue_type: QueueType,
    bracket_game_id: Optional[int] = None,
    seeding_team_id: Optional[int] = None,
    seeding_round: Optional[int] = None,
    table_number: Optional[int] = None,
) -> QueueItem:
    """Append one item at the end of the queue."""
    with atomic(session):
        event = _require_event(session, event_id, lock=True)
        if queue_type == QueueType.bracket:
            if bracket_game_id is None:
                raise ValidationError("bracket_game_id is required for bracket items", field="bracket_game_id")
            game = session.get(BracketGame, bracket_game_id)
            bracket = session.get(Bracket, game.bracket_id) if game else None
            if not bracket or bracket.event_id != event_id:
                raise NotFoundError(f"Game {bracket_game_id} not found in event {event_id}")
            duplicate = select(QueueItem).where(
                QueueItem.event_id == event_id,
                QueueItem.bracket_game_id == bracket_game_id,
            )
            seeding_team_id = seeding_round = None
        else:
            if seeding_team_id is None or seeding_round is None:
                raise ValidationError(
                    "seeding_team_id and seeding_round are required for seeding items",
                    field="seeding_team_id",
                )
            team = session.get(Team, seeding_team_id)
            if not team or team.event_id != event_id:
                raise NotFoundError(f"Team {seeding_team_id} not found in event {event_id}")
            if seeding_round < 1 or seeding_round > event.seeding_rounds:
                raise ValidationError(
                    f"seeding_round must be between 1 and {event.seeding_rounds}",
                    field="seeding_round",
                )
            duplicate = select(QueueItem).where(
                QueueItem.event_id == event_id,
                QueueItem.seeding_team_id == seeding_team_id,
                QueueItem.seeding_round == seeding_round,
            )
            bracket_game_id = None

        existing = session.exec(duplicate).first()
        if existing:
            raise ConflictError(
                "Item is already queued",
                queue_item_id=existing.id,
                queue_position=existing.queue_position,
            )

        item = QueueItem(
            event_id=event_id,
            queue_type=queue_type,
            bracket_game_id=bracket_game_id,
            seeding_team_id=seeding_team_id,
            seeding_round=seeding_round,
            table_number=table_number,
            queue_position=_next_position(session, event_id),
        )
        session.add(item)

    session.refresh(item)
    return item


def reorder_queue(session: Session, event_id: int, moves: Sequence[Tuple[int, int]]) -> List[QueueItem]:
    """
    Bulk reassignment: moves is [(item_id, requested_position), ...].

    Unmoved items keep their relative order. Moved items are inserted by requested
    position (ties keep the old order, positions past the end append), then the
    queue is renumbered densely, so the result is always 1..N.
    """
    with atomic(session):
        _require_event(session, event_id, lock=True)
        items = _event_items(session, event_id)
        by_id = {item.id: item for item in items}
        requested: Dict[int, int] = {}
        for item_id, position in moves:
            if item_id not in by_id:
                raise NotFoundError(f"Queue item {item_id} not found in event {event_id}")
            if position < 1:
                raise ValidationError("queue_position must be >= 1", field="queue_position")
            requested[item_id] = position

        ordered = [item for item in items if item.id not in requested]
        index = -1
        for item_id, position in sorted(requested.items(), key=lambda kv: (kv[1], by_id[kv[0]].queue_position)):
            index = min(max(position - 1, index + 1), len(ordered))
            ordered.insert(index, by_id[item_id])
        renumber(session, ordered)

    logger.info("Queue for event %d reordered: %d items moved", event_id, len(moves))
    return _event_items(session, event_id)


def move_queue_item(session: Session, item_id: int, direction: str) -> List[QueueItem]:
    """Swap an item with its neighbour. Moving past either end is a no-op."""
    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'", field="direction")

    with atomic(session):
        item = _require_item(session, item_id)
        items = _event_items(session, item.event_id)
        index = next(i for i, other in enumerate(items) if other.id == item.id)
        swap = index - 1 if direction == "up" else index + 1
        if 0 <= swap < len(items):
            items[index], items[swap] = items[swap], items[index]
            renumber(session, items)
        event_id = item.event_id

    return _event_items(session, event_id)


def remove_queue_item(session: Session, item_id: int) -> None:
    with atomic(session):
        item = _require_item(session, item_id)
        event_id = item.event_id
        session.delete(item)
        session.flush()
        renumber(session, _event_items(session, event_id))


def remove_items_for_games(session: Session, game_ids: Sequence[int]) -> int:
    """Drop queue items pointing at the given games and close the gaps. Caller owns the transaction."""
    if not game_ids:
        return 0
    _lock_events_for_games(session, game_ids)
    items = session.exec(select(QueueItem).where(QueueItem.bracket_game_id.in_(list(game_ids)))).all()
    event_ids = {item.event_id for item in items}
    for item in items:
        session.delete(item)
    session.flush()
    for event_id in event_ids:
        renumber(session, _event_items(session, event_id))
    return len(items)


def _transition(item: QueueItem, status: QueueStatus) -> None:
    current = QueueStatus(item.status)
    if status == current:
        return
    if status not in ALLOWED_TRANSITIONS[current]:
        raise StateError(f"Queue item cannot move from {current.value} to {status.value}")
    item.status = status
    if status == QueueStatus.called:
        item.called_at = datetime.utcnow()
    elif status == QueueStatus.queued:
        item.called_at = None
        item.table_number = None


def call_queue_item(session: Session, item_id: int, table_number: Optional[int] = None) -> QueueItem:
    """queued -> called, stamping called_at."""
    with atomic(session):
        item = _require_item(session, item_id)
        if item.status != QueueStatus.queued:
            raise StateError(f"Only queued items can be called (item is {item.status})")
        _transition(item, QueueStatus.called)
        if table_number is not None:
            item.table_number = table_number
        session.add(item)

    session.refresh(item)
    return item


def uncall_queue_item(session: Session, item_id: int) -> QueueItem:
    """called -> queued, clearing called_at and table_number."""
    with atomic(session):
        item = _require_item(session, item_id)
        if item.status != QueueStatus.called:
            raise StateError(f"Only called items can be uncalled (item is {item.status})")
        _transition(item, QueueStatus.queued)
        session.add(item)

    session.refresh(item)
    return item


def update_queue_item(
    session: Session,
    item_id: int,
    status: Optional[QueueStatus] = None,
    table_number: Optional[int] = None,
) -> QueueItem:
    with atomic(session):
        item = _require_item(session, item_id)
        if status is not None:
            _transition(item, QueueStatus(status))
        if table_number is not None:
            item.table_number = table_number
        session.add(item)

    session.refresh(item)
    return item


def mark_game_in_progress(session: Session, game_id: int) -> int:
    """Queue side of starting a game. Caller owns the transaction."""
    _lock_events_for_games(session, [game_id])
    items = session.exec(
        select(QueueItem).where(
            QueueItem.bracket_game_id == game_id,
            QueueItem.status.in_([QueueStatus.queued.value, QueueStatus.called.value]),
        )
    ).all()
    for item in items:
        item.status = QueueStatus.in_progress
        session.add(item)
    return len(items)


def mark_game_completed(session: Session, game_id: int) -> int:
    """Queue side of a recorded result. Caller owns the transaction."""
    _lock_events_for_games(session, [game_id])
    items = session.exec(
        select(QueueItem).where(
            QueueItem.bracket_game_id == game_id,
            QueueItem.status != QueueStatus.completed.value,
        )
    ).all()
    for item in items:
        item.status = QueueStatus.completed
        session.add(item)
    return len(items)


def reset_items_for_reopened_games(session: Session, game_ids: Sequence[int]) -> int:
    """
    Queue side of a correction. Caller owns the transaction.

    A reopened game that settled back to ready keeps its item, but a call made
    for the old pairing is withdrawn (called -> queued). Items of games that
    are no longer ready are dropped.
    """
    if not game_ids:
        return 0
    _lock_events_for_games(session, game_ids)
    games = session.exec(select(BracketGame).where(BracketGame.id.in_(list(game_ids)))).all()
    removed = remove_items_for_games(session, [g.id for g in games if g.status != GameStatus.ready])

    called = session.exec(
        select(QueueItem).where(
            QueueItem.bracket_game_id.in_(list(game_ids)),
            QueueItem.status == QueueStatus.called.value,
        )
    ).all()
    for item in called:
        _transition(item, QueueStatus.queued)
        session.add(item)
    if removed or called:
        logger.info("Correction reset the queue: %d items dropped, %d calls withdrawn", removed, len(called))
    return removed + len(called)


def mark_seeding_completed(session: Session, event_id: int, team_id: int, round_number: int) -> int:
    """Queue side of a recorded seeding score. Caller owns the transaction."""
    _lock_events(session, [event_id])
    items = session.exec(
        select(QueueItem).where(
            QueueItem.event_id == event_id,
            QueueItem.seeding_team_id == team_id,
            QueueItem.seeding_round == round_number,
            QueueItem.status != QueueStatus.completed.value,
        )
    ).all()
    for item in items:
        item.status = QueueStatus.completed
        session.add(item)
    return len(items)
