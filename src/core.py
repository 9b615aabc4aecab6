# core.py
# Pure move engine for the 2048 game: grid helpers, the directional
# compress-merge-compress algorithm, tile spawning and terminal checks.
# Nothing in here holds state between calls.

from enum import Enum
from typing import List, NamedTuple, Tuple
import random

Grid = List[List[int]]

EMPTY_CELL = 0

# Tile spawn probabilities (90% for 2, 10% for 4).
TILE_SPAWN_PROBS = {2: 0.9, 4: 0.1}
FOUR_TILE_PROBABILITY = TILE_SPAWN_PROBS[4]


class Direction(Enum):
    """Represents the possible move directions."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class MoveResult(NamedTuple):
    """Outcome of sliding a grid in one direction."""
    new_grid: Grid
    moved: bool
    score_gained: int


# --- Board Helper Functions ---

def get_board_size(board: Grid) -> int:
    """
    Validates that the grid is a non-empty square and returns its side length.
    Raises:
        ValueError: If any row length differs from the number of rows, or there are no rows.
    """
    if not board or not all(len(row) == len(board) for row in board):
        raise ValueError("Board must be a non-empty square matrix.")
    return len(board)


def empty_grid(size: int) -> Grid:
    if not isinstance(size, int) or size <= 0:
        raise ValueError("Board size must be a positive integer.")
    return [[EMPTY_CELL] * size for _ in range(size)]


def copy_grid(board: Grid) -> Grid:
    return [list(row) for row in board]


def get_empty_cells(board: Grid) -> List[Tuple[int, int]]:
    """
    Get coordinates of empty (0-value) cells in the given board.
    Args:
        board (Grid): The board to check.
    Returns:
        List[Tuple[int, int]]: List of (row, col) tuples for empty cells, row-major.
    """
    n = get_board_size(board)
    return [(row, col) for row in range(n) for col in range(n) if board[row][col] == EMPTY_CELL]


def count_empty_cells(board: Grid) -> int:
    return len(get_empty_cells(board))


def is_valid_tile(value: int) -> bool:
    """True for 0 (empty) or any power of two >= 2."""
    if value == EMPTY_CELL:
        return True
    return value >= 2 and value & (value - 1) == 0


def max_tile(board: Grid) -> int:
    return max((max(row) for row in board), default=0)


def reaches_tile(board: Grid, win_tile: int) -> bool:
    """
    Check if any tile on the board has reached win_tile.
    Args:
        board (Grid): The game board.
        win_tile (int): The tile value that signifies a win.
    Returns:
        bool: True if some cell holds a value >= win_tile.
    """
    return max_tile(board) >= win_tile


def spawn_tile(board: Grid, rng: random.Random) -> Tuple[Grid, bool]:
    """
    Adds a new tile (90% chance of 2, 10% chance of 4) to an empty cell on a copy of the board.
    Args:
        board (Grid): The current game board.
        rng (random.Random): Source of randomness for position and value.
    Returns:
        Tuple[Grid, bool]: A new board with the added tile and a boolean
                           indicating if a tile was successfully added.
                           If no empty cells, returns a copy of the board and False.
    """
    empty_cells = get_empty_cells(board)
    new_board = copy_grid(board)
    if not empty_cells:
        return new_board, False

    row, col = rng.choice(empty_cells)
    new_board[row][col] = 4 if rng.random() < FOUR_TILE_PROBABILITY else 2
    return new_board, True


def initialize_board(size: int, rng: random.Random) -> Grid:
    """
    Creates a new board with two random tiles.
    Raises:
        ValueError: If board size is not a positive integer.
    """
    board = empty_grid(size)
    board, _ = spawn_tile(board, rng)
    board, _ = spawn_tile(board, rng)
    return board


# --- Line Manipulation (Core Move Logic Helpers) ---

def _compress_line(line: List[int]) -> List[int]:
    """Slides all non-zero tiles to the start of the line, preserving order."""
    compressed = [value for value in line if value != EMPTY_CELL]
    return compressed + [EMPTY_CELL] * (len(line) - len(compressed))


def _merge_line(line: List[int]) -> Tuple[List[int], int]:
    """
    Merges adjacent identical numbers in a compressed line, moving towards index 0.

    A single pass from the start of the line: the merged tile takes the near
    position, the far position is cleared and skipped, so no tile merges twice.
    Args:
        line (List[int]): A compressed line.
    Returns:
        Tuple[List[int], int]: The merged line (possibly with gaps) and the score gained.
    """
    merged = list(line)
    score_increase = 0
    index = 0
    while index < len(merged) - 1:
        value = merged[index]
        if value != EMPTY_CELL and value == merged[index + 1]:
            merged[index] = value * 2
            merged[index + 1] = EMPTY_CELL
            score_increase += value * 2
            index += 2
        else:
            index += 1
    return merged, score_increase


def _process_single_line_leftwise(line: List[int]) -> Tuple[List[int], int]:
    """
    Applies compress, merge, then compress again to a single line, moving left.
    Args:
        line (List[int]): The line to process.
    Returns:
        Tuple[List[int], int]: The processed line and the score increase.
    """
    merged_line, score_delta = _merge_line(_compress_line(line))
    return _compress_line(merged_line), score_delta


# --- Board Transformations ---

def transpose_board(board: Grid) -> Grid:
    """Returns a new grid whose rows are the columns of `board`, used to run column moves as row moves."""
    n = get_board_size(board)
    return [[board[r][c] for r in range(n)] for c in range(n)]


def reverse_rows(board: Grid) -> Grid:
    """Returns a new board with every row reversed."""
    return [row[::-1] for row in board]


# --- Core Game Move Processing ---

def _apply_left_processing_to_all_lines(board: Grid) -> Tuple[Grid, int]:
    processed = []
    total_score = 0
    for line in board:
        new_line, line_score = _process_single_line_leftwise(line)
        processed.append(new_line)
        total_score += line_score
    return processed, total_score


def apply_direction(board: Grid, direction: Direction) -> MoveResult:
    """
    Slides and merges every line of the board in the given direction.

    The caller's board is never mutated. Right, up and down are handled by
    mirroring and/or transposing the board so that the leftward pass applies,
    then undoing the transformation.
    Args:
        board (Grid): The current game board.
        direction (Direction): The direction to move.
    Returns:
        MoveResult: The new board, whether any cell changed, and the score gained.
    Raises:
        ValueError: If the board is not square or the direction is unknown.
    """
    get_board_size(board)
    working = copy_grid(board)

    if direction == Direction.LEFT:
        new_board, score_gained = _apply_left_processing_to_all_lines(working)
    elif direction == Direction.RIGHT:
        processed, score_gained = _apply_left_processing_to_all_lines(reverse_rows(working))
        new_board = reverse_rows(processed)
    elif direction == Direction.UP:
        processed, score_gained = _apply_left_processing_to_all_lines(transpose_board(working))
        new_board = transpose_board(processed)
    elif direction == Direction.DOWN:
        processed, score_gained = _apply_left_processing_to_all_lines(
            reverse_rows(transpose_board(working))
        )
        new_board = transpose_board(reverse_rows(processed))
    else:
        raise ValueError("Invalid direction specified for apply_direction.")

    moved = new_board != board
    if not moved:
        return MoveResult(working, False, 0)
    return MoveResult(new_board, True, score_gained)


# --- Game State Checks ---

def has_adjacent_equal(board: Grid) -> bool:
    """
    Checks both axes for a pair of neighbouring cells holding the same non-zero value.
    """
    n = get_board_size(board)
    for r in range(n):
        for c in range(n):
            value = board[r][c]
            if value == EMPTY_CELL:
                continue
            if c + 1 < n and board[r][c + 1] == value:
                return True
            if r + 1 < n and board[r + 1][c] == value:
                return True
    return False


def is_terminal_grid(board: Grid) -> bool:
    """
    A grid is terminal when it has no empty cell and no legal merge on either axis.
    """
    return not get_empty_cells(board) and not has_adjacent_equal(board)


def is_move_possible_in_direction(board: Grid, direction: Direction) -> bool:
    """
    Looks one step past every tile in `direction` for an empty cell or an equal tile.
    Returns:
        bool: True when a move in that direction would change the grid.
    """
    n = get_board_size(board)
    offsets = {
        Direction.UP: (-1, 0),
        Direction.DOWN: (1, 0),
        Direction.LEFT: (0, -1),
        Direction.RIGHT: (0, 1),
    }
    dr, dc = offsets[direction]
    for r in range(n):
        for c in range(n):
            value = board[r][c]
            if value == EMPTY_CELL:
                continue  # Only non-empty tiles can initiate a move
            nr, nc = r + dr, c + dc
            if 0 <= nr < n and 0 <= nc < n and board[nr][nc] in (EMPTY_CELL, value):
                return True
    return False


def legal_directions(board: Grid) -> List[Direction]:
    return [direction for direction in Direction if is_move_possible_in_direction(board, direction)]
