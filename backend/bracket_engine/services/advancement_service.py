"""
Advancement: when a game is decided, move its winner (and loser) into the games
that draw from it, settling byes forward until nothing changes.

Slots are pulled, not pushed: each slot names its source ("seed:N", "winner:G",
"loser:G") and resolves only once that source is terminal (completed or bye).
A resolved slot may be *empty* (a bye seed, or a bye game with no winner).

Game rules applied when a game's slots are settled:
    both teams present          -> ready
    one team, other side empty  -> bye, the present team wins
    both sides empty            -> bye with no winner

A Grand Final won by the winners champion (team1) leaves the reset game's
team1 slot empty, so the reset closes as a bye won by the champion.
"""
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlmodel import Session, select

from bracket_engine.models.bracket import Bracket, BracketStatus
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.bracket_game import TERMINAL_GAME_STATUSES, BracketGame, GameStatus, Slot
from bracket_engine.services.errors import ConflictError, NotFoundError, StateError, ValidationError
from bracket_engine.utils.sql import atomic, get_for_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotResolution:
    resolved: bool
    team_id: Optional[int] = None


PENDING = SlotResolution(resolved=False)
EMPTY = SlotResolution(resolved=True)


def parse_source(source: Optional[str]) -> Tuple[str, int]:
    try:
        kind, ref = (source or "").split(":", 1)
        if kind not in ("seed", "winner", "loser"):
            raise ValueError(kind)
        return kind, int(ref)
    except ValueError:
        raise StateError(f"Invalid slot source: {source!r}")


class BracketGraph:
    """Arena of one bracket's games keyed by id and game_number."""

    def __init__(self, bracket: Bracket, games: Sequence[BracketGame], entries: Sequence[BracketEntry]):
        self.bracket = bracket
        self.games = sorted(games, key=lambda g: g.game_number)
        self.by_id: Dict[int, BracketGame] = {g.id: g for g in self.games}
        self.by_number: Dict[int, BracketGame] = {g.game_number: g for g in self.games}
        self.seeds: Dict[int, Optional[int]] = {e.seed_position: e.team_id for e in entries}

    @classmethod
    def load(cls, session: Session, bracket: Bracket) -> "BracketGraph":
        games = session.exec(select(BracketGame).where(BracketGame.bracket_id == bracket.id)).all()
        entries = session.exec(select(BracketEntry).where(BracketEntry.bracket_id == bracket.id)).all()
        return cls(bracket, games, entries)

    @property
    def terminal_game(self) -> Optional[BracketGame]:
        for game in reversed(self.games):
            if game.winner_advances_to_id is None:
                return game
        return None

    def targets(self, game: BracketGame) -> List[BracketGame]:
        ids = (game.winner_advances_to_id, game.loser_advances_to_id)
        return [self.by_id[i] for i in ids if i is not None]

    def resolve_source(self, source: Optional[str]) -> SlotResolution:
        kind, ref = parse_source(source)
        if kind == "seed":
            if ref not in self.seeds:
                raise StateError(f"Bracket {self.bracket.id} has no entry for seed {ref}")
            return SlotResolution(resolved=True, team_id=self.seeds[ref])

        feeder = self.by_number.get(ref)
        if feeder is None:
            raise StateError(f"Bracket {self.bracket.id} has no game {ref}")
        if feeder.status not in TERMINAL_GAME_STATUSES:
            return PENDING
        if kind == "winner":
            return SlotResolution(resolved=True, team_id=feeder.winner_id)
        if feeder.is_grand_final and feeder.winner_id == feeder.team1_id:
            # winners champion took the grand final: no reset opponent
            return EMPTY
        return SlotResolution(resolved=True, team_id=feeder.loser_id)

    def settle(self, game: BracketGame) -> bool:
        """Fill resolvable slots and apply the game rules. Returns True if anything changed."""
        if game.status not in (GameStatus.pending, GameStatus.ready):
            return False

        changed = False
        resolutions = []
        for slot in (Slot.team1, Slot.team2):
            res = self.resolve_source(game.source_of(slot))
            resolutions.append(res)
            if not res.resolved:
                continue
            current = game.team_in(slot)
            if current == res.team_id:
                continue
            if current is not None:
                raise StateError(
                    f"Game {game.game_number} {slot.value} already holds team {current}, "
                    f"refusing to overwrite with {res.team_id}"
                )
            game.set_team(slot, res.team_id)
            changed = True

        if not all(r.resolved for r in resolutions):
            return changed

        present = [r.team_id for r in resolutions if r.team_id is not None]
        if len(present) == 2:
            if game.status == GameStatus.pending:
                game.status = GameStatus.ready
                changed = True
        else:
            game.status = GameStatus.bye
            game.winner_id = present[0] if present else None
            game.loser_id = None
            game.completed_at = datetime.utcnow()
            changed = True
        return changed

    def resolve(self, start: Optional[Iterable[BracketGame]] = None) -> List[BracketGame]:
        """
        Settle games until a fixed point is reached.

        Starts from *start* (default: every game) and follows advancement pointers
        from each game that becomes terminal.

        Returns:
            The games that changed, in the order they were settled.

        Raises:
            StateError: a slot would be overwritten, or the worklist fails to drain.
        """
        work: Deque[BracketGame] = deque(start if start is not None else self.games)
        queued: Set[int] = {g.id for g in work}
        changed: List[BracketGame] = []
        seen_changed: Set[int] = set()
        limit = 4 * len(self.games) + 4
        steps = 0

        while work:
            steps += 1
            if steps > limit:
                raise StateError(f"Advancement for bracket {self.bracket.id} did not converge")
            game = work.popleft()
            queued.discard(game.id)
            if not self.settle(game):
                continue
            logger.debug("Settled game %d -> %s", game.game_number, game.status)
            if game.id not in seen_changed:
                seen_changed.add(game.id)
                changed.append(game)
            if game.status in TERMINAL_GAME_STATUSES:
                for target in self.targets(game):
                    if target.id not in queued:
                        queued.add(target.id)
                        work.append(target)
        return changed

    def dependents(self, game: BracketGame) -> Tuple[List[BracketGame], List[Tuple[BracketGame, Slot]], List[BracketGame]]:
        """
        Walk forward from *game* over everything its current result fed.

        Returns (conflicts, slots_to_clear, byes_to_reopen). A conflict is a
        dependent that was played or is being played.
        """
        conflicts: List[BracketGame] = []
        clear: List[Tuple[BracketGame, Slot]] = []
        reopen: List[BracketGame] = []
        seen: Set[Tuple[int, str]] = set()
        work: Deque[BracketGame] = deque([game])

        while work:
            current = work.popleft()
            edges = (
                (current.winner_advances_to_id, current.winner_slot),
                (current.loser_advances_to_id, current.loser_slot),
            )
            for target_id, slot in edges:
                if target_id is None or slot is None:
                    continue
                slot = Slot(slot)
                if (target_id, slot.value) in seen:
                    continue
                seen.add((target_id, slot.value))
                target = self.by_id[target_id]

                if target.status in (GameStatus.completed, GameStatus.in_progress):
                    if target.id not in {g.id for g in conflicts}:
                        conflicts.append(target)
                    continue
                if target.status == GameStatus.bye:
                    clear.append((target, slot))
                    if target.id not in {g.id for g in reopen}:
                        reopen.append(target)
                        work.append(target)
                    continue
                if target.team_in(slot) is not None:
                    clear.append((target, slot))
        return conflicts, clear, reopen

    def unwind(self, game: BracketGame) -> List[BracketGame]:
        """Undo everything *game*'s current result cascaded into and return the reopened games.

        Fails closed on played dependents.
        """
        conflicts, clear, reopen = self.dependents(game)
        if conflicts:
            logger.warning(
                "Correction of game %d rejected: %d downstream games already decided or in play",
                game.game_number,
                len(conflicts),
            )
            raise ConflictError(
                "Downstream games already depend on this result",
                conflicts=[
                    {
                        "game_id": g.id,
                        "game_number": g.game_number,
                        "round_name": g.round_name,
                        "status": GameStatus(g.status).value,
                    }
                    for g in conflicts
                ],
                game_id=game.id,
            )

        for target in reopen:
            target.winner_id = None
            target.loser_id = None
            target.completed_at = None
        for target, slot in clear:
            target.set_team(slot, None)
        touched = {g.id: g for g in reopen}
        touched.update({g.id: g for g, _ in clear})
        for target in touched.values():
            target.status = GameStatus.pending
            logger.debug("Reopened game %d", target.game_number)
        return list(touched.values())

    def sync_bracket_status(self) -> None:
        """completed when the terminal game is decided, back to in_progress when it is not."""
        terminal = self.terminal_game
        decided = terminal is not None and terminal.status in TERMINAL_GAME_STATUSES and terminal.winner_id is not None
        if decided and self.bracket.status == BracketStatus.in_progress:
            self.bracket.status = BracketStatus.completed
            logger.info("Bracket %d completed, champion team %d", self.bracket.id, terminal.winner_id)
        elif not decided and self.bracket.status == BracketStatus.completed:
            self.bracket.status = BracketStatus.in_progress
            logger.info("Bracket %d reopened by a correction", self.bracket.id)


def resolve_bracket(session: Session, bracket_id: int) -> Dict[str, int]:
    """
    Re-run bye and advancement resolution over a whole bracket.

    Guarantees:
        - Idempotent (a settled bracket reports games_changed == 0)
        - Single transaction
    """
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        graph = BracketGraph.load(session, bracket)
        changed = graph.resolve()
        graph.sync_bracket_status()
        return {"games_changed": len(changed)}


def _same_result(game: BracketGame, winner_id: int, team1_score: Optional[int], team2_score: Optional[int]) -> bool:
    return game.winner_id == winner_id and game.team1_score == team1_score and game.team2_score == team2_score


def _apply_result(
    session: Session,
    game: BracketGame,
    bracket: Bracket,
    winner_id: int,
    team1_score: Optional[int],
    team2_score: Optional[int],
    force: bool,
) -> int:
    from bracket_engine.services import queue_service

    correction = game.status == GameStatus.completed
    if correction:
        if not force:
            raise ConflictError(
                "Game already has a result. Resubmit with force=true to correct it.",
                game_id=game.id,
                current_winner_id=game.winner_id,
            )
        if bracket.status not in (BracketStatus.in_progress, BracketStatus.completed):
            raise StateError(f"Bracket is {bracket.status}, results cannot be corrected")
    else:
        if bracket.status != BracketStatus.in_progress:
            raise StateError(f"Bracket is {bracket.status}, not in_progress")
        if game.status not in (GameStatus.ready, GameStatus.in_progress):
            raise StateError(f"Game {game.game_number} is {game.status}, not ready for a result")

    if game.team1_id is None or game.team2_id is None:
        raise StateError(f"Game {game.game_number} does not have both teams yet")
    if winner_id not in (game.team1_id, game.team2_id):
        raise ValidationError("winner must be one of the game's teams", field="winner_team_id")
    for field, value in (("team1_score", team1_score), ("team2_score", team2_score)):
        if value is not None and value < 0:
            raise ValidationError(f"{field} must be >= 0", field=field)

    if correction and winner_id == game.winner_id:
        # same winner: nothing downstream changes
        game.team1_score = team1_score
        game.team2_score = team2_score
        session.add(game)
        logger.info("Scores corrected for game %d (bracket %d)", game.game_number, bracket.id)
        return 0

    graph = BracketGraph.load(session, bracket)
    game = graph.by_id[game.id]
    reopened: List[BracketGame] = []
    if correction:
        previous_winner = game.winner_id
        reopened = graph.unwind(game)
        logger.info(
            "Correcting game %d (bracket %d): winner %s -> %d, %d downstream games reopened",
            game.game_number,
            bracket.id,
            previous_winner,
            winner_id,
            len(reopened),
        )

    now = datetime.utcnow()
    game.winner_id = winner_id
    game.loser_id = game.team2_id if winner_id == game.team1_id else game.team1_id
    game.team1_score = team1_score
    game.team2_score = team2_score
    game.status = GameStatus.completed
    game.started_at = game.started_at or now
    game.completed_at = now

    changed = graph.resolve(graph.targets(game))
    graph.sync_bracket_status()
    queue_service.mark_game_completed(session, game.id)
    if reopened:
        queue_service.reset_items_for_reopened_games(session, [g.id for g in reopened])
    return len(changed)


def submit_game_result(
    session: Session,
    game_id: int,
    winner_id: int,
    team1_score: Optional[int] = None,
    team2_score: Optional[int] = None,
    force: bool = False,
) -> BracketGame:
    """
    Record a game result and advance winner/loser downstream.

    An identical resubmission of a completed game is a no-op. A different result
    needs force=True and is applied as a correction. Keeping the winner only
    rewrites the scores. A new winner clears the downstream slots and byes
    cascaded from the old result first, and is rejected with ConflictError if
    any dependent game is completed or in progress. Queue items of reopened
    games are requeued, or dropped when the game is not ready again.

    Raises:
        NotFoundError, StateError, ValidationError, ConflictError
    """
    with atomic(session):
        game = get_for_update(session, BracketGame, game_id)
        if not game:
            raise NotFoundError("Game not found")
        bracket = get_for_update(session, Bracket, game.bracket_id)

        unchanged = game.status == GameStatus.completed and _same_result(game, winner_id, team1_score, team2_score)
        if not unchanged:
            advanced = _apply_result(session, game, bracket, winner_id, team1_score, team2_score, force)

    if not unchanged:
        logger.info(
            "Result recorded for game %d (bracket %d): winner team %d, %d games advanced",
            game.game_number,
            game.bracket_id,
            winner_id,
            advanced,
        )
    session.refresh(game)
    return game


def start_game(session: Session, game_id: int) -> BracketGame:
    """ready -> in_progress. Starting a game already in progress is a no-op."""
    from bracket_engine.services import queue_service

    with atomic(session):
        game = get_for_update(session, BracketGame, game_id)
        if not game:
            raise NotFoundError("Game not found")
        started = game.status != GameStatus.in_progress
        if started:
            bracket = session.get(Bracket, game.bracket_id)
            if bracket.status != BracketStatus.in_progress:
                raise StateError(f"Bracket is {bracket.status}, not in_progress")
            if game.status != GameStatus.ready:
                raise StateError(f"Game {game.game_number} is {game.status}, only ready games can start")
            game.status = GameStatus.in_progress
            game.started_at = datetime.utcnow()
            session.add(game)
            queue_service.mark_game_in_progress(session, game.id)

    if started:
        logger.info("Game %d (bracket %d) started", game.game_number, game.bracket_id)
    session.refresh(game)
    return game
