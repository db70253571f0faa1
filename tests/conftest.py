import os
import random
import sys
from dataclasses import replace

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Headless pygame for the host tests.
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

from chronicle.actions import StartGame  # noqa: E402
from chronicle.population import Villager  # noqa: E402
from chronicle.rules import Difficulty, Job  # noqa: E402
from chronicle.state import initial_state  # noqa: E402
from chronicle.transition import transition  # noqa: E402


class ScriptedRandom(random.Random):
    """A Random whose ``random()`` replays a script, then repeats ``default``."""

    def __init__(self, values=(), default=0.99, seed=0):
        super().__init__(seed)
        self.values = list(values)
        self.default = default

    def random(self):
        if self.values:
            return self.values.pop(0)
        return self.default


def make_villager(vid, age=30, job=Job.FARMER, happiness=60, health=100, hunger=0, name="Ann Smith"):
    return Villager(
        id=vid,
        name=name,
        age=age,
        job=job,
        happiness=happiness,
        happiness_baseline=50,
        health=health,
        hunger=hunger,
        energy=80,
    )


@pytest.fixture
def playing_state():
    """A fresh Normal game on tick 1, unpaused."""
    return transition(initial_state(), StartGame(Difficulty.NORMAL), random.Random(7))


@pytest.fixture
def small_village(playing_state):
    """Five well-fed adults and two children; no guards needed below ten people."""
    people = tuple(make_villager(f"v{i}", job=Job.FARMER) for i in range(5)) + (
        make_villager("c0", age=5, job=Job.CHILD),
        make_villager("c1", age=8, job=Job.CHILD),
    )
    return replace(playing_state, population=people)
