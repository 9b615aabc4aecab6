from dataclasses import FrozenInstanceError

import pytest

from history import HistoryEntry, UndoStack


def entry(score):
    return HistoryEntry.capture([[score, 0], [0, 0]], score, 0)


class TestHistoryEntry:
    def test_capture_is_a_deep_copy(self):
        grid = [[2, 0], [0, 4]]
        captured = HistoryEntry.capture(grid, 8, 1)
        grid[0][0] = 16
        assert captured.grid == ((2, 0), (0, 4))

    def test_entry_is_frozen(self):
        with pytest.raises(FrozenInstanceError):
            entry(2).score = 10

    def test_grid_copy_is_independent(self):
        captured = entry(2)
        copy = captured.grid_copy()
        copy[0][0] = 64
        assert captured.grid[0][0] == 2


class TestUndoStack:
    def test_push_and_pop_are_lifo(self):
        stack = UndoStack(5)
        stack.push(entry(2))
        stack.push(entry(4))
        assert stack.peek().score == 4
        assert stack.pop().score == 4
        assert stack.pop().score == 2
        assert stack.pop() is None
        assert stack.peek() is None

    def test_oldest_entries_are_evicted(self):
        stack = UndoStack(3)
        for score in (2, 4, 8, 16, 32):
            stack.push(entry(score))
        assert len(stack) == 3
        assert [e.score for e in stack] == [8, 16, 32]

    def test_tail_is_oldest_first(self):
        stack = UndoStack(10)
        for score in (2, 4, 8, 16):
            stack.push(entry(score))
        assert [e.score for e in stack.tail(2)] == [8, 16]
        assert [e.score for e in stack.tail(10)] == [2, 4, 8, 16]
        assert stack.tail(0) == []

    def test_clear(self):
        stack = UndoStack(2)
        stack.push(entry(2))
        stack.clear()
        assert len(stack) == 0

    @pytest.mark.parametrize("limit", [0, -1])
    def test_limit_must_be_positive(self, limit):
        with pytest.raises(ValueError):
            UndoStack(limit)

    def test_limit(self):
        assert UndoStack(7).limit == 7
