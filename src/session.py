# session.py
# A single game of 2048: owns the grid, score and flags, sequences each turn
# (move, spawn, terminal check) and spends the bounded undo budget.

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union
import logging
import random
import time

from pydantic import ValidationError

import core
from core import Direction, Grid
from history import HistoryEntry, UndoStack
from snapshot import HistoryRecord, SessionSnapshot

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 4
DEFAULT_WIN_TILE = 2048
MAX_UNDO = 3
HISTORY_LIMIT = 20
SNAPSHOT_HISTORY_TAIL = 5


class FailureReason(Enum):
    """Why a session operation was refused."""
    NO_OP_MOVE = "no_op_move"
    SESSION_TERMINAL = "session_terminal"
    UNDO_EXHAUSTED = "undo_exhausted"
    INVALID_SNAPSHOT = "invalid_snapshot"
    TURN_IN_PROGRESS = "turn_in_progress"


@dataclass(frozen=True)
class OperationResult:
    """Returned by every session operation instead of raising."""
    success: bool
    failure: Optional[FailureReason] = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls) -> "OperationResult":
        return cls(success=True)

    @classmethod
    def fail(cls, reason: FailureReason, detail: Optional[str] = None) -> "OperationResult":
        return cls(success=False, failure=reason, detail=detail)


class GameSession:
    """
    Mutable state of one game.

    Construct through `new_session` or `restore_session`. The session is only
    changed by `apply_move` and `undo`; both complete fully before returning,
    so an observer never sees a half-applied turn.
    """

    def __init__(
        self,
        grid: Grid,
        *,
        score: int = 0,
        best_score: int = 0,
        undo_used: int = 0,
        max_undo: int = MAX_UNDO,
        win_tile: int = DEFAULT_WIN_TILE,
        is_won: bool = False,
        history: Iterable[HistoryEntry] = (),
        history_limit: int = HISTORY_LIMIT,
        rng: Optional[random.Random] = None,
    ):
        self._size = core.get_board_size(grid)
        if self._size < 2:
            raise ValueError("Board size must be at least 2.")
        if not all(core.is_valid_tile(value) for row in grid for value in row):
            raise ValueError("Grid tiles must be empty or powers of two >= 2.")
        if score < 0 or best_score < 0:
            raise ValueError("Scores cannot be negative.")
        if max_undo < 0:
            raise ValueError("max_undo cannot be negative.")
        if not 0 <= undo_used <= max_undo:
            raise ValueError("undo_used must be between 0 and max_undo.")
        if win_tile <= 0:
            raise ValueError("win_tile must be positive.")
        self._grid = core.copy_grid(grid)
        self._score = score
        self._best_score = max(best_score, score)
        self._undo_used = undo_used
        self._max_undo = max_undo
        self._win_tile = win_tile
        self._rng = rng if rng is not None else random.Random()
        self._history = UndoStack(history_limit)
        for entry in history:
            self._history.push(entry)
        self._is_won = is_won or core.reaches_tile(self._grid, win_tile)
        self._is_over = core.is_terminal_grid(self._grid)
        self._turn_in_progress = False

    # --- Observation surface ---

    @property
    def grid(self) -> Grid:
        return core.copy_grid(self._grid)

    @property
    def size(self) -> int:
        return self._size

    @property
    def score(self) -> int:
        return self._score

    @property
    def best_score(self) -> int:
        return self._best_score

    @property
    def is_over(self) -> bool:
        return self._is_over

    @property
    def is_won(self) -> bool:
        return self._is_won

    @property
    def win_tile(self) -> int:
        return self._win_tile

    @property
    def max_undo(self) -> int:
        return self._max_undo

    @property
    def undo_used(self) -> int:
        return self._undo_used

    @property
    def undo_remaining(self) -> int:
        return self._max_undo - self._undo_used

    @property
    def history_depth(self) -> int:
        return len(self._history)

    @property
    def can_undo(self) -> bool:
        return not self._is_over and self.undo_remaining > 0 and len(self._history) > 0

    @property
    def empty_cell_count(self) -> int:
        return core.count_empty_cells(self._grid)

    @property
    def max_tile(self) -> int:
        return core.max_tile(self._grid)

    def legal_directions(self) -> List[Direction]:
        if self._is_over:
            return []
        return core.legal_directions(self._grid)

    # --- Turn handling ---

    def apply_move(self, direction: Direction) -> OperationResult:
        """
        Plays one turn in the given direction.

        On success the pre-move state is pushed to the undo history, the moved
        grid and score are committed, one tile is spawned and the win/loss
        flags are refreshed.
        Returns:
            OperationResult: failure is SESSION_TERMINAL, TURN_IN_PROGRESS or NO_OP_MOVE
                             when nothing changed.
        """
        if self._is_over:
            return OperationResult.fail(FailureReason.SESSION_TERMINAL)
        if self._turn_in_progress:
            return OperationResult.fail(FailureReason.TURN_IN_PROGRESS)

        self._turn_in_progress = True
        try:
            return self._play_turn(direction)
        finally:
            self._turn_in_progress = False

    def _play_turn(self, direction: Direction) -> OperationResult:
        result = core.apply_direction(self._grid, direction)
        if not result.moved:
            logger.debug("Move %s left the grid unchanged", direction.value)
            return OperationResult.fail(FailureReason.NO_OP_MOVE)

        # Everything is computed before the first attribute is touched.
        next_grid, placed = core.spawn_tile(result.new_grid, self._rng)
        if not placed:
            logger.warning("No empty cell left to spawn a tile after moving %s", direction.value)

        self._history.push(HistoryEntry.capture(self._grid, self._score, self._undo_used))
        self._grid = next_grid
        self._score += result.score_gained
        if self._score > self._best_score:
            self._best_score = self._score
        logger.debug("Moved %s, gained %d, score now %d", direction.value, result.score_gained, self._score)
        self._check_terminal_state()
        return OperationResult.ok()

    def _check_terminal_state(self) -> None:
        if not self._is_won and core.reaches_tile(self._grid, self._win_tile):
            self._is_won = True
            logger.info("Reached the %d tile with score %d", self._win_tile, self._score)
        if core.is_terminal_grid(self._grid):
            self._is_over = True
            logger.info("Game over with score %d", self._score)

    def undo(self) -> OperationResult:
        """
        Rolls back the most recent move, spawned tile included.

        The undo budget is checked before anything is popped. best_score and
        is_won are never rolled back.
        """
        if self._is_over:
            return OperationResult.fail(FailureReason.SESSION_TERMINAL)
        if self._turn_in_progress:
            return OperationResult.fail(FailureReason.TURN_IN_PROGRESS)
        if self._undo_used >= self._max_undo:
            return OperationResult.fail(FailureReason.UNDO_EXHAUSTED, "No undo chances left.")

        entry = self._history.pop()
        if entry is None:
            return OperationResult.fail(FailureReason.UNDO_EXHAUSTED, "Nothing to undo.")

        self._grid = entry.grid_copy()
        self._score = entry.score
        self._undo_used += 1
        logger.debug("Undo restored score %d, %d undo(s) remaining", self._score, self.undo_remaining)
        return OperationResult.ok()

    # --- Snapshots ---

    def to_snapshot(self, timestamp: Optional[float] = None, history_tail: int = SNAPSHOT_HISTORY_TAIL) -> dict:
        """
        Serializes the session to a plain dict of builtins.
        Args:
            timestamp (Optional[float]): Epoch seconds to stamp; defaults to now.
            history_tail (int): How many of the newest history entries to keep.
        Returns:
            dict: A record accepted by `restore_session`.
        """
        snapshot = SessionSnapshot(
            grid=core.copy_grid(self._grid),
            score=self._score,
            best_score=self._best_score,
            undo_used=self._undo_used,
            max_undo=self._max_undo,
            win_tile=self._win_tile,
            is_won=self._is_won,
            history=[
                HistoryRecord(grid=entry.grid_copy(), score=entry.score, undo_used=entry.undo_used)
                for entry in self._history.tail(history_tail)
            ],
            timestamp=time.time() if timestamp is None else timestamp,
        )
        return snapshot.model_dump()


def new_session(
    grid_size: int = DEFAULT_GRID_SIZE,
    max_undo: int = MAX_UNDO,
    *,
    win_tile: int = DEFAULT_WIN_TILE,
    history_limit: int = HISTORY_LIMIT,
    best_score: int = 0,
    rng: Optional[random.Random] = None,
) -> GameSession:
    """
    Starts a fresh game with two random tiles.
    Args:
        grid_size (int): Dimension N of the N x N grid, at least 2.
        max_undo (int): How many undos the player may spend in this game.
        win_tile (int): Tile value that marks the game as won.
        history_limit (int): How many pre-move states are retained for undo.
        best_score (int): Best score carried over from earlier games.
        rng (Optional[random.Random]): Source of randomness for tile spawns.
    Returns:
        GameSession: The new session.
    Raises:
        ValueError: If any setting is out of range.
    """
    if not isinstance(grid_size, int) or grid_size < 2:
        raise ValueError("Board size must be an integer of at least 2.")

    rng = rng if rng is not None else random.Random()
    grid = core.initialize_board(grid_size, rng)
    logger.debug("New %dx%d session, %d undo(s) allowed", grid_size, grid_size, max_undo)
    return GameSession(
        grid,
        best_score=best_score,
        max_undo=max_undo,
        win_tile=win_tile,
        history_limit=history_limit,
        rng=rng,
    )


def restore_session(
    record: Union[Mapping[str, Any], SessionSnapshot],
    *,
    history_limit: int = HISTORY_LIMIT,
    rng: Optional[random.Random] = None,
) -> Tuple[Optional[GameSession], OperationResult]:
    """
    Rebuilds a session from a snapshot record after validating it.
    Returns:
        Tuple[Optional[GameSession], OperationResult]: The session and a success result,
            or None and an INVALID_SNAPSHOT failure describing what was wrong.
    """
    try:
        snapshot = SessionSnapshot.model_validate(record)
    except ValidationError as e:
        logger.warning("Rejected session snapshot: %d validation error(s)", e.error_count())
        return None, OperationResult.fail(FailureReason.INVALID_SNAPSHOT, str(e))

    history = [HistoryEntry.capture(entry.grid, entry.score, entry.undo_used) for entry in snapshot.history]
    session = GameSession(
        snapshot.grid,
        score=snapshot.score,
        best_score=snapshot.best_score,
        undo_used=snapshot.undo_used,
        max_undo=snapshot.max_undo,
        win_tile=snapshot.win_tile,
        is_won=snapshot.is_won,
        history=history,
        history_limit=history_limit,
        rng=rng,
    )
    return session, OperationResult.ok()
