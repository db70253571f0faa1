"""Ending classification and the templated ending summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Tuple

from chronicle.population import average_happiness
from chronicle.rules import MAX_YEARS, TECH_TREE, BuildingKind, total_buildings, years_elapsed

if TYPE_CHECKING:
    from chronicle.state import WorldState

VICTORY = "Victory"
DESTRUCTION = "Destruction"

REASON_MILITARY = "insufficient military"
REASON_EXTINCTION = "population extinguished"


@dataclass(frozen=True)
class Ending:
    label: str
    hidden: bool
    predicate: Callable[["WorldState"], bool]


def _rich(state: "WorldState") -> bool:
    res = state.resources
    return res.food >= 1000 and res.gold >= 500 and res.wood >= 300 and res.stone >= 300


def _all_techs(state: "WorldState") -> bool:
    return len(set(state.technologies)) >= len(TECH_TREE)


# Checked in order; hidden endings come before the special ones.
ENDINGS: Tuple[Ending, ...] = (
    Ending(
        "Golden Age",
        True,
        lambda s: len(s.population) >= 60
        and average_happiness(s.population) >= 75
        and _all_techs(s)
        and s.stats.invasions_repelled >= 5
        and _rich(s)
        and total_buildings(s.buildings) > 30
        and s.stats.total_deaths < 5,
    ),
    Ending(
        "Utopia",
        True,
        lambda s: len(s.population) >= 40
        and average_happiness(s.population) >= 90
        and s.stats.starvation_days == 0,
    ),
    Ending(
        "Unbroken Shield",
        True,
        lambda s: s.stats.invasions_repelled >= 10 and s.stats.raids_survived == 0,
    ),
    Ending("Age of Enlightenment", False, _all_techs),
    Ending(
        "Merchant Republic",
        False,
        lambda s: s.resources.gold >= 2000 and s.building(BuildingKind.MARKET) >= 3,
    ),
    Ending("Bastion", False, lambda s: s.stats.invasions_repelled >= 5),
    Ending("Thriving Town", False, lambda s: len(s.population) >= 50),
    Ending(
        "Pious Haven",
        False,
        lambda s: s.building(BuildingKind.CATHEDRAL) + s.building(BuildingKind.TEMPLE) >= 5,
    ),
    Ending("Festival Village", False, lambda s: s.stats.festivals_held >= 20),
    Ending("Last Survivors", False, lambda s: 0 < len(s.population) <= 10),
)


def classify(state: "WorldState", base: str = VICTORY) -> str:
    """Refine a victory into the first achievement it satisfies.

    Defeats keep their base label; the proximate cause lives in
    ``ending_reason``.
    """
    if base != VICTORY:
        return base
    for ending in ENDINGS:
        if ending.predicate(state):
            return ending.label
    return VICTORY


SUMMARY_TEMPLATES: Dict[str, str] = {
    VICTORY: (
        "After {years} years of toil the village has found peace and plenty. "
        "{population} villagers enjoy a life won with sweat and wit."
    ),
    "Golden Age": (
        "Bards will sing of these {years} years: every art mastered, every enemy "
        "turned back, and {population} villagers living in a golden age."
    ),
    "Utopia": "In {years} years the village became a place where nobody went hungry and everyone smiled.",
    "Unbroken Shield": "Not one raid ever broke through. The village's walls and guards became legend.",
    "Age of Enlightenment": "The village's scholars unlocked every secret of their age.",
    "Merchant Republic": "Gold flowed through the village markets and traders came from every road.",
    "Bastion": "Invader after invader was thrown back from the village gates.",
    "Thriving Town": "The little village grew into a bustling town of {population} souls.",
    "Pious Haven": "Bells rang out from the village's many temples and cathedrals.",
    "Festival Village": "The village became famous for its feasts, held more often than anywhere else.",
    "Last Survivors": "Only {population} villagers remained, but they endured to the end.",
}

DEFEAT_SUMMARIES: Dict[str, str] = {
    REASON_MILITARY: (
        "With too few defenders the village was overrun. Its people were slain or "
        "scattered and the houses left in ruins."
    ),
    REASON_EXTINCTION: (
        "Through famine, sickness and hardship the last villager passed away. Only "
        "empty houses and silence remain."
    ),
}


def fallback_summary(state: "WorldState") -> str:
    """Deterministic summary used when the narrative service is unavailable."""
    if state.ending_type == DESTRUCTION:
        return DEFEAT_SUMMARIES.get(state.ending_reason or REASON_EXTINCTION, DEFEAT_SUMMARIES[REASON_EXTINCTION])
    template = SUMMARY_TEMPLATES.get(state.ending_type or VICTORY, SUMMARY_TEMPLATES[VICTORY])
    return template.format(years=min(MAX_YEARS, years_elapsed(state.tick)), population=len(state.population))
