"""Final score and letter rank."""

from __future__ import annotations

from typing import TYPE_CHECKING

from chronicle.numeric import round2
from chronicle.population import average_happiness
from chronicle.rules import Difficulty, total_buildings

if TYPE_CHECKING:
    from chronicle.state import WorldState

DIFFICULTY_SCORE_FACTOR = {
    Difficulty.EASY: 0.8,
    Difficulty.NORMAL: 1.0,
    Difficulty.HARD: 1.5,
}

RANKS = ((50000, "S"), (35000, "A"), (20000, "B"), (10000, "C"), (5000, "D"))


def score(state: "WorldState") -> float:
    value = 0.0
    value = round2(value + len(state.population) * 100)
    value = round2(value + round2(average_happiness(state.population)) * 50)
    value = round2(value + len(state.technologies) * 500)
    value = round2(value + total_buildings(state.buildings) * 200)
    value = round2(value + state.resources.gold)
    value = round2(value - state.stats.total_deaths * 50)
    value = round2(value - state.stats.starvation_days * 10)
    return round2(value * DIFFICULTY_SCORE_FACTOR[state.difficulty])


def rank(final_score: float) -> str:
    for threshold, letter in RANKS:
        if final_score > threshold:
            return letter
    return "F"
