"""Scripted raids and invasions."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

INVASION_INTERVAL = 15
MIN_POPULATION_FOR_RAIDS = 5


@dataclass(frozen=True)
class MilitaryThreat:
    name: str
    message: str
    # Guards needed per villager at base coverage.
    guards_per_villager: float
    success_message: str
    success_deltas: Dict[str, float]
    failure_message: str
    failure_deltas: Dict[str, float]
    failure_pop: int

    def required_guards(self, population: int) -> int:
        return max(1, math.ceil(population * self.guards_per_villager))


MILITARY_THREATS: Tuple[MilitaryThreat, ...] = (
    MilitaryThreat(
        name="raiders",
        message="A small band of raiders is approaching the village.",
        guards_per_villager=1 / 15,
        success_message="The guards drove them off and took their loot.",
        success_deltas={"food": 10, "wood": 0, "gold": 20},
        failure_message="The raiders looted the stores before slipping away.",
        failure_deltas={"food": -60, "wood": -20, "gold": -30},
        failure_pop=-1,
    ),
    MilitaryThreat(
        name="brigands",
        message="Brigands from the hills are descending on the fields.",
        guards_per_villager=1 / 12,
        success_message="The brigands were routed and their camp seized.",
        success_deltas={"food": 20, "wood": 10, "gold": 40},
        failure_message="The brigands burned fields and carried off captives.",
        failure_deltas={"food": -100, "wood": -30, "gold": -50},
        failure_pop=-2,
    ),
    MilitaryThreat(
        name="warband",
        message="A rival lord's warband is marching on the village.",
        guards_per_villager=1 / 10,
        success_message="The warband broke against the defenders and fled.",
        success_deltas={"food": 40, "wood": 40, "gold": 80},
        failure_message="The warband sacked the outer houses.",
        failure_deltas={"food": -150, "wood": -60, "gold": -80},
        failure_pop=-4,
    ),
    MilitaryThreat(
        name="army",
        message="An invading army has laid siege to the village.",
        guards_per_villager=1 / 8,
        success_message="Against all odds the siege was lifted and the army's baggage train captured.",
        success_deltas={"food": 100, "wood": 80, "gold": 150},
        failure_message="The army breached the defences and put the village to the sword.",
        failure_deltas={"food": -250, "wood": -100, "gold": -150},
        failure_pop=-8,
    ),
)


@dataclass(frozen=True)
class InvasionOutcome:
    threat: MilitaryThreat
    repelled: bool
    catastrophic: bool
    food: float
    wood: float
    gold: float
    pop: int

    @property
    def message(self) -> str:
        detail = self.threat.success_message if self.repelled else self.threat.failure_message
        return f"{self.threat.message} {detail}"


def invasion_due(tick: int, population: int) -> bool:
    return population > MIN_POPULATION_FOR_RAIDS and tick % INVASION_INTERVAL == 0


def select_threat(population: int, rng: random.Random) -> MilitaryThreat:
    """Bigger villages draw the attention of bigger threats."""
    if population < 15:
        tiers = 1
    elif population < 30:
        tiers = 2
    elif population < 50:
        tiers = 3
    else:
        tiers = len(MILITARY_THREATS)
    return MILITARY_THREATS[rng.randrange(tiers)]


def resolve_invasion(
    population: int,
    guards: int,
    coverage: int,
    base_coverage: int,
    rng: random.Random,
    threat: Optional[MilitaryThreat] = None,
) -> InvasionOutcome:
    """Pit the guard force against a threat.

    A failed defence is catastrophic when the losses would leave nobody
    alive or when the village has no guards at all.
    """
    threat = threat or select_threat(population, rng)
    required_strength = threat.required_guards(population) * base_coverage
    if guards * coverage >= required_strength:
        deltas = threat.success_deltas
        return InvasionOutcome(threat, True, False, deltas["food"], deltas["wood"], deltas["gold"], 0)

    deltas = threat.failure_deltas
    catastrophic = population + threat.failure_pop <= 0 or guards == 0
    return InvasionOutcome(threat, False, catastrophic, deltas["food"], deltas["wood"], deltas["gold"], threat.failure_pop)
