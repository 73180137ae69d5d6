"""
Runtime: game start + result submission.
A recorded result advances the winner (and, in double elimination, the loser)
through the bracket in the same transaction. Corrections need force=true and
are refused when a downstream game has already been played.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from bracket_engine.database import get_session
from bracket_engine.routes.brackets import BracketGameResponse
from bracket_engine.services.advancement_service import resolve_bracket, start_game, submit_game_result
from bracket_engine.services.errors import EngineError

router = APIRouter()


class GameResultSubmit(BaseModel):
    winner_team_id: int
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    force: bool = False

    @field_validator("team1_score", "team2_score")
    @classmethod
    def validate_score(cls, v):
        if v is not None and v < 0:
            raise ValueError("scores must be >= 0")
        return v


@router.post("/games/{game_id}/result", response_model=BracketGameResponse)
def post_game_result(game_id: int, payload: GameResultSubmit, session: Session = Depends(get_session)):
    """Record a result. 409 when the game already has a different result and force is false,
    or when a correction would unwind a game that was already played."""
    try:
        return submit_game_result(
            session,
            game_id,
            payload.winner_team_id,
            team1_score=payload.team1_score,
            team2_score=payload.team2_score,
            force=payload.force,
        )
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/games/{game_id}/start", response_model=BracketGameResponse)
def post_game_start(game_id: int, session: Session = Depends(get_session)):
    try:
        return start_game(session, game_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/brackets/{bracket_id}/resolve")
def post_resolve_bracket(bracket_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    """Re-run bye and advancement resolution. Safe to repeat."""
    try:
        return resolve_bracket(session, bracket_id)
    except EngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
