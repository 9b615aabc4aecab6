from fastapi import Body, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from collections import OrderedDict
from typing import Any, Dict, List, Optional
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import os
import uuid

import core
import session as game_session

logging.basicConfig(level=os.getenv("GAME_LOG_LEVEL", "INFO"), format='[%(levelname)s] %(message)s')
logger = logging.getLogger(__name__)

RATE_LIMIT = os.getenv("GAME_API_RATE_LIMIT", "100/minute")
MAX_SESSIONS = int(os.getenv("GAME_API_MAX_SESSIONS", "1000"))

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="Plays 2048 games held by this server. "\
                "Each game is addressed by the session id returned from /game/new or /game/restore.",
    version="2.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Sessions owned by this host process, keyed by session id, least recently used first.
sessions: "OrderedDict[str, game_session.GameSession]" = OrderedDict()

FAILURE_MESSAGES = {
    game_session.FailureReason.NO_OP_MOVE: "Move was not effective; board state unchanged by slide.",
    game_session.FailureReason.SESSION_TERMINAL: "Game Over. No more valid moves.",
    game_session.FailureReason.UNDO_EXHAUSTED: "Nothing left to undo.",
    game_session.FailureReason.INVALID_SNAPSHOT: "Snapshot could not be restored.",
    game_session.FailureReason.TURN_IN_PROGRESS: "Another turn is still being processed.",
}

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: int = Field(
        default=game_session.DEFAULT_GRID_SIZE,
        gt=1, # Board size must be at least 2x2
        description="Size of the N x N game board (e.g., 4 for a 4x4 board)."
    )
    win_tile: int = Field(
        default=game_session.DEFAULT_WIN_TILE,
        gt=0,
        description="The tile value to achieve for winning the game (e.g., 2048)."
    )
    max_undo: int = Field(
        default=game_session.MAX_UNDO,
        ge=0,
        description="How many moves the player may take back in this game."
    )
    best_score: int = Field(default=0, ge=0, description="Best score carried over from earlier games.")

class GameStateData(BaseModel):
    """Represents the observable state of a game instance."""
    session_id: str
    board: List[List[int]] = Field(..., description="The N x N game board, represented as a list of lists.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    best_score: int = Field(..., ge=0)
    is_over: bool
    is_won: bool
    undo_remaining: int = Field(..., ge=0)
    empty_cells: int = Field(..., ge=0)
    legal_moves: List[core.Direction]
    win_tile: int = Field(..., gt=0, description="The tile value required to win this game instance.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")

class MoveRequestData(BaseModel):
    """Data required to make a move."""
    direction: core.Direction = Field(..., description="Direction of the move (up, down, left, right).")

class ActionResponseData(GameStateData):
    """Response after a move or undo, with the new state and whether the action took effect."""
    success: bool
    failure: Optional[game_session.FailureReason] = None
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was invalid, game ended, or other info."
    )

# --- Helpers ---

def _get_session(session_id: str) -> game_session.GameSession:
    game = sessions.get(session_id)
    if game is None:
        raise HTTPException(status_code=404, detail=f"Unknown game session '{session_id}'.")
    sessions.move_to_end(session_id)
    return game

def _register_session(game: game_session.GameSession) -> str:
    session_id = uuid.uuid4().hex
    sessions[session_id] = game
    while len(sessions) > MAX_SESSIONS:
        evicted_id, _ = sessions.popitem(last=False)
        logger.info("Evicted game %s, registry is capped at %d", evicted_id, MAX_SESSIONS)
    return session_id

def _state_data(session_id: str, game: game_session.GameSession) -> Dict[str, Any]:
    return dict(
        session_id=session_id,
        board=game.grid,
        score=game.score,
        best_score=game.best_score,
        is_over=game.is_over,
        is_won=game.is_won,
        undo_remaining=game.undo_remaining,
        empty_cells=game.empty_cell_count,
        legal_moves=game.legal_directions(),
        win_tile=game.win_tile,
        board_size=game.size,
    )

def _action_response(session_id: str, game: game_session.GameSession,
                     result: game_session.OperationResult, newly_won: bool = False) -> ActionResponseData:
    message: Optional[str] = None
    if not result.success:
        message = result.detail or FAILURE_MESSAGES.get(result.failure)
    elif game.is_over:
        message = "Game Over. No more valid moves."
    elif newly_won:
        message = "Congratulations! You won!"
    return ActionResponseData(
        **_state_data(session_id, game),
        success=result.success,
        failure=result.failure,
        message=message,
    )

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit(RATE_LIMIT)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Creates a new game held by the server and returns its id and initial state.

    - **size**: Dimension of the N x N board (e.g., 4 for 4x4). Default is 4.
    - **win_tile**: Tile value to reach to win (e.g., 2048). Default is 2048.
    - **max_undo**: Undo chances for this game. Default is 3.
    """
    try:
        game = game_session.new_session(
            settings.size,
            settings.max_undo,
            win_tile=settings.win_tile,
            best_score=settings.best_score,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    session_id = _register_session(game)
    logger.info("Started game %s (%dx%d)", session_id, settings.size, settings.size)
    return GameStateData(**_state_data(session_id, game))


@app.get("/game/{session_id}", response_model=GameStateData, summary="Read a Game's State")
@limiter.limit(RATE_LIMIT)
async def get_game(request: Request, session_id: str):
    return GameStateData(**_state_data(session_id, _get_session(session_id)))


@app.post("/game/{session_id}/move", response_model=ActionResponseData, summary="Make a Move in the Game")
@limiter.limit(RATE_LIMIT)
async def make_move(request: Request, session_id: str, request_data: MoveRequestData):
    """
    Plays one turn: slide and merge, spawn a tile, check for win or game over.

    A move that changes nothing, or any move after game over, is reported with
    `success: false` and the reason; the game state is left untouched.
    """
    game = _get_session(session_id)
    was_won = game.is_won
    result = game.apply_move(request_data.direction)
    return _action_response(session_id, game, result, newly_won=game.is_won and not was_won)


@app.post("/game/{session_id}/undo", response_model=ActionResponseData, summary="Take Back the Last Move")
@limiter.limit(RATE_LIMIT)
async def undo_move(request: Request, session_id: str):
    game = _get_session(session_id)
    result = game.undo()
    return _action_response(session_id, game, result)


@app.get("/game/{session_id}/snapshot", summary="Export a Game Snapshot")
@limiter.limit(RATE_LIMIT)
async def export_snapshot(request: Request, session_id: str) -> Dict[str, Any]:
    """Returns a record that /game/restore accepts to resume this game later."""
    return _get_session(session_id).to_snapshot()


@app.post("/game/restore", response_model=GameStateData, summary="Resume a Game From a Snapshot")
@limiter.limit(RATE_LIMIT)
async def restore_game(request: Request, snapshot: Dict[str, Any] = Body(...)):
    game, result = game_session.restore_session(snapshot)
    if game is None:
        raise HTTPException(status_code=400, detail=f"{FAILURE_MESSAGES[result.failure]} {result.detail}")

    session_id = _register_session(game)
    logger.info("Restored game %s with score %d", session_id, game.score)
    return GameStateData(**_state_data(session_id, game))


@app.delete("/game/{session_id}", summary="Drop a Game")
@limiter.limit(RATE_LIMIT)
async def delete_game(request: Request, session_id: str) -> Dict[str, Any]:
    """Removes a game from the server, e.g. once it is over and its result has been recorded."""
    _get_session(session_id)
    del sessions[session_id]
    logger.info("Dropped game %s", session_id)
    return {"session_id": session_id, "deleted": True}
