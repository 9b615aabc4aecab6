# snapshot.py
# Pydantic models describing the serializable record of a game session.
# The persistence layer stores these records; the session validates them
# before it agrees to resume from one.

from typing import List

from pydantic import BaseModel, Field, StrictBool, StrictInt, field_validator, model_validator

import core


def _check_grid(grid: List[List[int]]) -> List[List[int]]:
    try:
        size = core.get_board_size(grid)
    except ValueError as e:
        raise ValueError(f"Invalid grid: {e}") from e
    if size < 2:
        raise ValueError("Grid must be at least 2x2.")
    for row in grid:
        for value in row:
            if not core.is_valid_tile(value):
                raise ValueError(f"Tile {value} is not empty or a power of two >= 2.")
    return grid


class HistoryRecord(BaseModel):
    """One pre-move state kept for undo."""
    grid: List[List[StrictInt]] = Field(..., description="Grid as it was before the move.")
    score: StrictInt = Field(..., ge=0, description="Score before the move.")
    undo_used: StrictInt = Field(..., ge=0, description="Undo counter at capture time.")

    @field_validator("grid")
    @classmethod
    def grid_must_hold_tiles(cls, grid: List[List[int]]) -> List[List[int]]:
        return _check_grid(grid)


class SessionSnapshot(BaseModel):
    """Everything needed to resume a game session exactly."""
    grid: List[List[StrictInt]] = Field(..., description="The N x N game grid.")
    score: StrictInt = Field(..., ge=0)
    best_score: StrictInt = Field(..., ge=0)
    undo_used: StrictInt = Field(..., ge=0)
    max_undo: StrictInt = Field(..., ge=0)
    win_tile: StrictInt = Field(..., gt=0)
    is_won: StrictBool = False
    history: List[HistoryRecord] = Field(default_factory=list, description="Trimmed tail, oldest first.")
    timestamp: float = Field(..., ge=0, description="Seconds since the epoch when the record was taken.")

    @field_validator("grid")
    @classmethod
    def grid_must_hold_tiles(cls, grid: List[List[int]]) -> List[List[int]]:
        return _check_grid(grid)

    @model_validator(mode="after")
    def check_consistency(self) -> "SessionSnapshot":
        size = len(self.grid)
        if any(len(entry.grid) != size for entry in self.history):
            raise ValueError("History grids must match the session grid dimension.")
        if any(entry.undo_used > self.undo_used for entry in self.history):
            raise ValueError("History entries cannot record more undos than the session.")
        if self.undo_used > self.max_undo:
            raise ValueError("undo_used cannot exceed max_undo.")
        if self.best_score < self.score:
            raise ValueError("best_score cannot be lower than score.")
        return self
