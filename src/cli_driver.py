# cli_driver.py
# This file is intended to be run to play or test the 2048 game on the CLI

from typing import Callable, Optional
import logging
import os
import random

from core import Direction
from session import FailureReason, GameSession, new_session

BOARD_SIZE = 4
WIN_CONDITION_TILE = 2048 # For testing, can be set lower e.g. 32 or 64
MAX_UNDO = 3

DIRECTION_KEYS = {'W': Direction.UP, 'A': Direction.LEFT, 'S': Direction.DOWN, 'D': Direction.RIGHT}


def main(read_input: Callable[[str], str] = input, seed: Optional[int] = None) -> GameSession:
    logging.basicConfig(level=os.getenv("GAME_LOG_LEVEL", "WARNING"), format='[%(levelname)s] %(message)s')

    # 1. Initialize game
    game = new_session(BOARD_SIZE, MAX_UNDO, win_tile=WIN_CONDITION_TILE, rng=random.Random(seed))
    display_board_state(game)
    announced_win = False

    # 2. Game Loop
    while not game.is_over:
        move_input = read_input("Enter move (W/A/S/D for Up/Left/Down/Right, U to undo, Q to quit): ").strip().upper()

        if move_input == 'Q':
            print("Quitting game.")
            break

        if move_input == 'U':
            result = game.undo()
            if result.success:
                print(f"Move undone. Undo chances left: {game.undo_remaining}")
            else:
                print(f"Cannot undo: {result.detail}")
            display_board_state(game)
            continue

        chosen_direction = DIRECTION_KEYS.get(move_input)
        if not chosen_direction:
            print("Invalid input. Use W, A, S, D, U or Q.")
            continue

        # 3. Play the turn; the session spawns the new tile and checks for win/loss
        result = game.apply_move(chosen_direction)
        if result.failure == FailureReason.NO_OP_MOVE:
            print("Move did not change the board. Try a different direction.")
            continue

        if game.is_won and not announced_win:
            announced_win = True
            print(f"You reached the {game.win_tile} tile! Keep going for a higher score.")
        display_board_state(game)

    # 4. Game Ended
    print("\n--- Final Board State ---")
    display_board_state(game)
    if game.is_over:
        print("No more moves possible. Better luck next time!")
    return game


# --- Display Function (Example of external usage) ---
def display_board_state(game: GameSession):
    """Prints the board, score, and game status to the console."""
    print(f"\nScore: {game.score}  Best: {game.best_score}  Undo: {game.undo_remaining}/{game.max_undo}")
    if game.is_over:
        print("GAME OVER!")
    elif game.is_won:
        print("YOU WON! (play continues)")
    else:
        print("Status: IN_PROGRESS")

    for row in game.grid:
        print("\t".join(map(str, row)))
    print("-" * (game.size * 6)) # Adjust width based on board size


if __name__ == "__main__":
    main()
