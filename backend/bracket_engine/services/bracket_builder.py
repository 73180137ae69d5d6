"""
Bracket Tree Builder: seed entries -> BracketGame graph with advancement pointers.

Layout for a bracket of size N = 2^k:

  winners  rounds 1..k      N/2, N/4, ..., 1 games
  losers   rounds 1..2k-2   (double elimination only)
             L1      pairs the winners round-1 losers
             L(2j)   L(2j-1) winners vs winners round j+1 losers (drop-in)
             L(2j+1) pairs the L(2j) winners
  finals   round 2k-1       Grand Final: winners champion vs losers champion
           round 2k         Championship Reset (team1 = GF loser, team2 = GF winner)

Every slot is described by a source string ("seed:N", "winner:G", "loser:G").
Pointers are derived from sources, so a game's winner_advances_to_id is the
game that lists "winner:<its game_number>" and winner_slot is the slot it sits in.

game_number is assigned once, ordered by (round_number, side, position). A
game always gets a higher number than every game it draws from.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from bracket_engine.models.bracket import Bracket, BracketStatus, EliminationType
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.bracket_game import BracketGame, BracketSide, GameStatus, Slot
from bracket_engine.services.entry_seeder import is_valid_bracket_size, standard_seed_order
from bracket_engine.services.errors import ConflictError, NotFoundError, StateError, ValidationError
from bracket_engine.utils.sql import atomic, get_for_update

logger = logging.getLogger(__name__)

SIDE_ORDER = {BracketSide.winners: 0, BracketSide.losers: 1, BracketSide.finals: 2}

GameKey = Tuple[BracketSide, int, int]  # (side, round_number, position)
SourceRef = Tuple[str, object]  # ("seed", seed_position) | ("winner" | "loser", GameKey)


@dataclass
class GameSpec:
    side: BracketSide
    round_number: int
    position: int  # 0-based within the round
    round_name: str
    team1_ref: SourceRef
    team2_ref: SourceRef
    is_grand_final: bool = False
    is_reset_game: bool = False

    # filled by number_games()
    game_number: int = 0
    team1_source: str = ""
    team2_source: str = ""
    winner_to: Optional[int] = None  # game_number
    winner_slot: Optional[Slot] = None
    loser_to: Optional[int] = None
    loser_slot: Optional[Slot] = None

    @property
    def key(self) -> GameKey:
        return (self.side, self.round_number, self.position)

    def to_dict(self) -> Dict:
        return {
            "game_number": self.game_number,
            "round_number": self.round_number,
            "round_name": self.round_name,
            "bracket_side": self.side.value,
            "team1_source": self.team1_source,
            "team2_source": self.team2_source,
            "winner_advances_to": self.winner_to,
            "winner_slot": self.winner_slot.value if self.winner_slot else None,
            "loser_advances_to": self.loser_to,
            "loser_slot": self.loser_slot.value if self.loser_slot else None,
            "is_grand_final": self.is_grand_final,
            "is_reset_game": self.is_reset_game,
        }


def winners_round_name(round_number: int, total_rounds: int, double: bool) -> str:
    from_end = total_rounds - round_number
    if from_end == 0:
        name = "Final"
    elif from_end == 1:
        name = "Semifinal"
    elif from_end == 2:
        name = "Quarterfinal"
    else:
        name = f"Round {round_number}"
    return f"Winners {name}" if double else name


def losers_round_name(round_number: int, total_rounds: int) -> str:
    if round_number == total_rounds:
        return "Losers Final"
    return f"Losers Round {round_number}"


def _winners_games(size: int, double: bool) -> List[GameSpec]:
    k = size.bit_length() - 1
    order = standard_seed_order(size)
    games: List[GameSpec] = []
    for p in range(size // 2):
        games.append(
            GameSpec(
                side=BracketSide.winners,
                round_number=1,
                position=p,
                round_name=winners_round_name(1, k, double),
                team1_ref=("seed", order[2 * p]),
                team2_ref=("seed", order[2 * p + 1]),
            )
        )
    for r in range(2, k + 1):
        for p in range(size >> r):
            games.append(
                GameSpec(
                    side=BracketSide.winners,
                    round_number=r,
                    position=p,
                    round_name=winners_round_name(r, k, double),
                    team1_ref=("winner", (BracketSide.winners, r - 1, 2 * p)),
                    team2_ref=("winner", (BracketSide.winners, r - 1, 2 * p + 1)),
                )
            )
    return games


def _losers_games(size: int) -> List[GameSpec]:
    k = size.bit_length() - 1
    total = 2 * k - 2
    W, L = BracketSide.winners, BracketSide.losers
    games: List[GameSpec] = []

    for p in range(size >> 2):
        games.append(
            GameSpec(
                side=L,
                round_number=1,
                position=p,
                round_name=losers_round_name(1, total),
                team1_ref=("loser", (W, 1, 2 * p)),
                team2_ref=("loser", (W, 1, 2 * p + 1)),
            )
        )

    for m in range(2, total + 1):
        if m % 2 == 0:
            # drop-in round: survivors meet the losers of winners round j+1
            j = m // 2
            count = size >> (j + 1)
            for p in range(count):
                # alternate orientation to delay rematches
                drop = count - 1 - p if j % 2 == 1 else p
                games.append(
                    GameSpec(
                        side=L,
                        round_number=m,
                        position=p,
                        round_name=losers_round_name(m, total),
                        team1_ref=("winner", (L, m - 1, p)),
                        team2_ref=("loser", (W, j + 1, drop)),
                    )
                )
        else:
            count = size >> ((m + 3) // 2)
            for p in range(count):
                games.append(
                    GameSpec(
                        side=L,
                        round_number=m,
                        position=p,
                        round_name=losers_round_name(m, total),
                        team1_ref=("winner", (L, m - 1, 2 * p)),
                        team2_ref=("winner", (L, m - 1, 2 * p + 1)),
                    )
                )
    return games


def _finals_games(size: int) -> List[GameSpec]:
    k = size.bit_length() - 1
    gf_key = (BracketSide.finals, 2 * k - 1, 0)
    return [
        GameSpec(
            side=BracketSide.finals,
            round_number=2 * k - 1,
            position=0,
            round_name="Grand Final",
            team1_ref=("winner", (BracketSide.winners, k, 0)),
            team2_ref=("winner", (BracketSide.losers, 2 * k - 2, 0)),
            is_grand_final=True,
        ),
        GameSpec(
            side=BracketSide.finals,
            round_number=2 * k,
            position=0,
            round_name="Championship Reset",
            team1_ref=("loser", gf_key),
            team2_ref=("winner", gf_key),
            is_reset_game=True,
        ),
    ]


def number_games(games: List[GameSpec]) -> List[GameSpec]:
    """Assign game numbers, render sources and derive advancement pointers."""
    games.sort(key=lambda g: (g.round_number, SIDE_ORDER[g.side], g.position))
    by_key = {}
    for number, game in enumerate(games, start=1):
        game.game_number = number
        by_key[game.key] = game

    def render(ref: SourceRef) -> str:
        kind, target = ref
        if kind == "seed":
            return f"seed:{target}"
        return f"{kind}:{by_key[target].game_number}"

    for game in games:
        game.team1_source = render(game.team1_ref)
        game.team2_source = render(game.team2_ref)
        for slot, (kind, target) in ((Slot.team1, game.team1_ref), (Slot.team2, game.team2_ref)):
            if kind == "winner":
                by_key[target].winner_to = game.game_number
                by_key[target].winner_slot = slot
            elif kind == "loser":
                by_key[target].loser_to = game.game_number
                by_key[target].loser_slot = slot
    return games


def build_bracket_plan(size: int, elimination_type: EliminationType = EliminationType.double) -> List[GameSpec]:
    """
    Pure game plan for a bracket of *size* seed positions.

    Returns GameSpecs ordered by game_number:
        single elimination: size - 1 games
        double elimination: 2 * size - 1 games (winners, losers, grand final, reset)
    """
    if not is_valid_bracket_size(size):
        raise ValidationError("bracket_size must be a power of two between 4 and 64", field="bracket_size")

    double = elimination_type == EliminationType.double
    games = _winners_games(size, double)
    if double:
        games.extend(_losers_games(size))
        games.extend(_finals_games(size))
    return number_games(games)


def delete_games(session: Session, bracket_id: int) -> int:
    """Remove every game of a bracket along with queue items that reference them."""
    from bracket_engine.services import queue_service

    games = session.exec(select(BracketGame).where(BracketGame.bracket_id == bracket_id)).all()
    if not games:
        return 0
    queue_service.remove_items_for_games(session, [g.id for g in games])

    # pointers reference sibling rows; clear them before deleting
    for game in games:
        game.winner_advances_to_id = None
        game.loser_advances_to_id = None
        session.add(game)
    session.flush()
    for game in games:
        session.delete(game)
    session.flush()
    return len(games)


def build_games(session: Session, bracket: Bracket, force: bool = False) -> Dict[str, int]:
    """Persist the bracket's game graph and settle byes. Caller owns the transaction."""
    from bracket_engine.services.advancement_service import BracketGraph

    entries = session.exec(select(BracketEntry).where(BracketEntry.bracket_id == bracket.id)).all()
    if len(entries) != bracket.bracket_size:
        raise StateError("Generate entries before generating games")

    existing = session.exec(select(BracketGame.id).where(BracketGame.bracket_id == bracket.id)).all()
    if existing and not force:
        raise ConflictError(
            "Bracket already has games. Use force=true to regenerate.",
            bracket_id=bracket.id,
            games_count=len(existing),
        )
    if existing:
        delete_games(session, bracket.id)
        bracket.status = BracketStatus.setup
        session.add(bracket)
        logger.info("Bracket %d: %d existing games removed for regeneration", bracket.id, len(existing))

    plan = build_bracket_plan(bracket.bracket_size, bracket.elimination_type)
    rows: Dict[int, BracketGame] = {}
    for spec in plan:
        row = BracketGame(
            bracket_id=bracket.id,
            game_number=spec.game_number,
            round_number=spec.round_number,
            round_name=spec.round_name,
            bracket_side=spec.side,
            team1_source=spec.team1_source,
            team2_source=spec.team2_source,
            winner_slot=spec.winner_slot,
            loser_slot=spec.loser_slot,
            is_grand_final=spec.is_grand_final,
            is_reset_game=spec.is_reset_game,
        )
        session.add(row)
        rows[spec.game_number] = row
    session.flush()

    for spec in plan:
        row = rows[spec.game_number]
        row.winner_advances_to_id = rows[spec.winner_to].id if spec.winner_to else None
        row.loser_advances_to_id = rows[spec.loser_to].id if spec.loser_to else None
    session.flush()

    graph = BracketGraph(bracket, list(rows.values()), entries)
    settled = graph.resolve()
    bye_games = sum(1 for g in settled if g.status == GameStatus.bye)

    logger.info(
        "Generated %d games for bracket %d (%s elimination, %d byes settled)",
        len(plan),
        bracket.id,
        EliminationType(bracket.elimination_type).value,
        bye_games,
    )
    return {"games_created": len(plan), "bye_games": bye_games}


def generate_games(session: Session, bracket_id: int, force: bool = False) -> Dict[str, int]:
    """Generate the game graph for a seeded bracket. force=True replaces existing games."""
    with atomic(session):
        bracket = get_for_update(session, Bracket, bracket_id)
        if not bracket:
            raise NotFoundError("Bracket not found")
        return build_games(session, bracket, force=force)


def list_games(session: Session, bracket_id: int) -> List[BracketGame]:
    return session.exec(
        select(BracketGame).where(BracketGame.bracket_id == bracket_id).order_by(BracketGame.game_number)
    ).all()
