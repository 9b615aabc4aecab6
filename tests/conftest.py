import random

import pytest


class ScriptedRandom(random.Random):
    """
    Deterministic random source: always picks the first candidate cell and
    returns a fixed draw, so spawned tiles land in a known place.
    """

    def __init__(self, draw=0.5):
        super().__init__(0)
        self.draw = draw

    def choice(self, seq):
        return seq[0]

    def random(self):
        return self.draw


@pytest.fixture
def scripted_rng():
    """Spawns a 2 in the first empty cell (row-major)."""
    return ScriptedRandom()


@pytest.fixture
def scripted_rng_four():
    """Spawns a 4 in the first empty cell (row-major)."""
    return ScriptedRandom(0.05)


@pytest.fixture
def blocked_grid():
    """A full 4x4 checkerboard with no equal neighbours on either axis."""
    return [
        [2, 4, 2, 4],
        [4, 2, 4, 2],
        [2, 4, 2, 4],
        [4, 2, 4, 2],
    ]
