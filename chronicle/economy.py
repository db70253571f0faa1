"""Productivity and allocation model.

Turns jobs, buildings and technologies into per-worker output, splits a
short food supply between villagers by priority tier, and prices trade
goods from production capacity. Every helper is pure; the tick transition
strings them together.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from chronicle.numeric import clamp, round2
from chronicle.population import Villager
from chronicle.rules import (
    ADULT_AGE,
    ADULT_FOOD,
    BUILDING_MAINTENANCE,
    CAVALRY_STABLES_BONUS,
    CHILD_FOOD,
    ELDER_AGE,
    FARMER_WEEKLY_BASE,
    GUARD_BUILDING_BONUS,
    GUARD_COVERAGE_BASE,
    GUARD_COVERAGE_UPGRADED,
    JOB_INCOME,
    SEASON_FOOD_MULTIPLIER,
    TRADE_PRICE_BASE_MODIFIER,
    TRADE_PRICE_MAX,
    TRADE_PRICE_MIN,
    TRADE_PRICE_THRESHOLDS,
    BuildingKind,
    FoodPriority,
    Job,
    Season,
)

# Happiness maps linearly onto 10%..200% productivity.
MIN_PRODUCTIVITY = 0.1
PRODUCTIVITY_RANGE = 1.9
MIN_EFFICIENCY = 0.1

BASELINE_HAPPINESS = 50
MAX_BASELINE_BONUS = 20

FARM_TECH_BONUS = {"farming_1": 0.2, "irrigation_1": 0.2, "advanced_farming": 0.3}
FOOD_BUILDING_BONUS = {BuildingKind.FARM: 0.15, BuildingKind.AQUEDUCT: 0.1}
WOOD_TECH_BONUS = {"tools_1": 0.2, "forestry_1": 0.2}
WOOD_BUILDING_BONUS = {BuildingKind.LUMBER_MILL: 0.15, BuildingKind.BLACKSMITH: 0.1, BuildingKind.WORKSHOP: 0.1}
MINING_TECH_BONUS = {"tools_1": 0.2, "metallurgy_1": 0.3}
MINING_BUILDING_BONUS = {BuildingKind.MINE: 0.15, BuildingKind.BLACKSMITH: 0.1, BuildingKind.WORKSHOP: 0.1}
# Weekly knowledge each scholar gains per building, before efficiency.
SCHOLAR_BUILDING_BONUS = {BuildingKind.LIBRARY: 0.2 * 7, BuildingKind.UNIVERSITY: 0.3 * 7, BuildingKind.ALCHEMIST: 0.15 * 7}
SCRIBING_BONUS = 7
ALCHEMY_FLAT_BONUS = 15


def architecture_bonus(technologies: Iterable[str]) -> float:
    return 1.2 if "architecture_1" in technologies else 1.0


def _additive_bonus(
    technologies: Iterable[str],
    buildings: Mapping[BuildingKind, int],
    tech_bonus: Mapping[str, float],
    building_bonus: Mapping[BuildingKind, float],
) -> Tuple[float, float]:
    techs = set(technologies)
    arch = architecture_bonus(techs)
    from_tech = round2(sum(bonus for tech, bonus in tech_bonus.items() if tech in techs))
    from_buildings = round2(sum(buildings.get(kind, 0) * bonus * arch for kind, bonus in building_bonus.items()))
    return from_tech, from_buildings


def seasonal_food_multiplier(
    season: Season,
    technologies: Iterable[str],
    buildings: Mapping[BuildingKind, int],
    production_multiplier: float,
) -> float:
    """Season base, then tech bonuses, then building bonuses, then difficulty."""
    from_tech, from_buildings = _additive_bonus(technologies, buildings, FARM_TECH_BONUS, FOOD_BUILDING_BONUS)
    additive = round2(SEASON_FOOD_MULTIPLIER[season] + from_tech + from_buildings)
    return round2(additive * production_multiplier)


@dataclass(frozen=True)
class WorkerMultipliers:
    wood: float
    mining: float


def worker_multipliers(
    technologies: Iterable[str],
    buildings: Mapping[BuildingKind, int],
    production_multiplier: float,
) -> WorkerMultipliers:
    techs = tuple(technologies)
    wood_tech, wood_buildings = _additive_bonus(techs, buildings, WOOD_TECH_BONUS, WOOD_BUILDING_BONUS)
    mine_tech, mine_buildings = _additive_bonus(techs, buildings, MINING_TECH_BONUS, MINING_BUILDING_BONUS)
    return WorkerMultipliers(
        wood=round2((1.0 + wood_tech + wood_buildings) * production_multiplier),
        mining=round2((1.0 + mine_tech + mine_buildings) * production_multiplier),
    )


def happiness_productivity(happiness: float) -> float:
    return round2(MIN_PRODUCTIVITY + (happiness / 100) * PRODUCTIVITY_RANGE)


def efficiency(villager: Villager) -> float:
    """Production scalar from hunger, health and happiness, floored at 0.1."""
    value = 1.0
    if villager.hunger > 20:
        value -= 0.2
    if villager.hunger > 50:
        value -= 0.3
    if villager.hunger > 80:
        value -= 0.2
    if villager.health < 50:
        value -= 0.3
    if villager.health < 20:
        value -= 0.2
    value = round2(value * happiness_productivity(villager.happiness))
    return round2(max(MIN_EFFICIENCY, value))


@dataclass(frozen=True)
class Production:
    food: float = 0.0
    wood: float = 0.0
    stone: float = 0.0
    gold: float = 0.0
    knowledge: float = 0.0
    active_farmers: float = 0.0


def produce(
    population: Sequence[Villager],
    technologies: Iterable[str],
    buildings: Mapping[BuildingKind, int],
    production_multiplier: float,
    food_multiplier: float,
) -> Production:
    """Weekly output of every living adult, plus the harvest."""
    techs = tuple(technologies)
    mult = worker_multipliers(techs, buildings, production_multiplier)
    arch = architecture_bonus(techs)
    scholar_bonus = round2(sum(buildings.get(kind, 0) * bonus * arch for kind, bonus in SCHOLAR_BUILDING_BONUS.items()))
    if "scribing_1" in techs:
        scholar_bonus = round2(scholar_bonus + SCRIBING_BONUS)

    wood = stone = gold = knowledge = farmers = 0.0
    for villager in population:
        if villager.age < ADULT_AGE or villager.health <= 0:
            continue
        eff = efficiency(villager)
        income = JOB_INCOME[villager.job]
        if villager.job == Job.FARMER:
            farmers = round2(farmers + eff)
        wood = round2(wood + income.get("wood", 0) * mult.wood * eff)
        stone = round2(stone + income.get("stone", 0) * mult.mining * eff)
        gold = round2(gold + income.get("gold", 0) * mult.mining * eff)
        knowledge = round2(knowledge + income.get("knowledge", 0) * eff)
        if villager.job == Job.SCHOLAR:
            knowledge = round2(knowledge + scholar_bonus * eff)

    if "alchemy_1" in techs:
        knowledge = round2(knowledge + ALCHEMY_FLAT_BONUS)
    food = round2(round2(farmers * FARMER_WEEKLY_BASE) * food_multiplier)
    return Production(food=food, wood=wood, stone=stone, gold=gold, knowledge=knowledge, active_farmers=farmers)


def guard_coverage(technologies: Iterable[str], buildings: Mapping[BuildingKind, int]) -> Tuple[int, int]:
    """Returns (base coverage, total coverage) for a single guard."""
    techs = set(technologies)
    base = GUARD_COVERAGE_UPGRADED if "archery_1" in techs else GUARD_COVERAGE_BASE
    total = base + sum(buildings.get(kind, 0) * bonus for kind, bonus in GUARD_BUILDING_BONUS.items())
    if "cavalry_1" in techs:
        total += buildings.get(BuildingKind.STABLES, 0) * CAVALRY_STABLES_BONUS
    return base, total


def required_guards(population: int, coverage: int) -> int:
    return max(1, math.ceil(population / max(1, coverage)))


def security_ratio(guards: int, coverage: int, population: int) -> float:
    return round2(min(1.0, (guards * coverage) / max(1, population)))


def food_need(villager: Villager, consumption_rate: float, technologies: Iterable[str], buildings: Mapping[BuildingKind, int]) -> float:
    base = CHILD_FOOD if villager.age < ADULT_AGE else ADULT_FOOD
    granaries = buildings.get(BuildingKind.GRANARY, 0)
    granary = 1 - granaries * 0.05 if granaries > 0 else 1.0
    preservation = 0.9 if "preservation_1" in technologies else 1.0
    return round2(max(0.0, base * consumption_rate * granary * preservation))


def food_priority(villager: Villager, mode: FoodPriority) -> int:
    """Priority class 2 is served first, then 1, then 0."""
    if mode == FoodPriority.CHILDREN_FIRST:
        return 2 if villager.age < ADULT_AGE else 1
    if mode == FoodPriority.WORKERS_FIRST:
        return 2 if villager.job not in (Job.UNEMPLOYED, Job.CHILD) else 1
    if mode == FoodPriority.ELDERLY_LAST:
        if villager.age >= ELDER_AGE:
            return 0
        return 2 if villager.age < ADULT_AGE else 1
    return 1


def allocate_food(
    needs: Sequence[Tuple[Villager, float]],
    available: float,
    mode: FoodPriority,
) -> Dict[str, float]:
    """Food received per villager id.

    Everyone is fed in full when supply covers demand. Otherwise classes
    are served in priority order and, within a class, in population order;
    the villager who exhausts the supply gets the remainder and everyone
    after gets nothing.
    """
    total = round2(sum(need for _, need in needs))
    if available >= total:
        return {v.id: need for v, need in needs}

    allocation = {v.id: 0.0 for v, _ in needs}
    remaining = max(0.0, available)
    for tier in (2, 1, 0):
        for villager, need in needs:
            if remaining <= 0:
                return allocation
            if food_priority(villager, mode) != tier:
                continue
            served = min(need, remaining)
            allocation[villager.id] = round2(served)
            remaining = round2(remaining - served)
    return allocation


def shortage_ratio(received: float, needed: float) -> float:
    if needed <= 0:
        return 0.0
    return round2(max(0.0, 1 - received / needed))


def happiness_baseline(buildings: Mapping[BuildingKind, int]) -> float:
    """Wonders raise the resting happiness, each extra one worth less."""
    cathedrals = buildings.get(BuildingKind.CATHEDRAL, 0)
    cathedral_bonus = 0
    if cathedrals > 0:
        cathedral_bonus = 5
        if cathedrals > 1:
            cathedral_bonus += 3
        if cathedrals > 2:
            cathedral_bonus += min(cathedrals - 2, 4)

    temples = buildings.get(BuildingKind.TEMPLE, 0)
    temple_bonus = 0
    if temples > 0:
        temple_bonus = 2 + min(temples - 1, 5)

    return BASELINE_HAPPINESS + min(MAX_BASELINE_BONUS, cathedral_bonus + temple_bonus)


def happiness_recovery(technologies: Iterable[str], buildings: Mapping[BuildingKind, int]) -> int:
    """Weekly happiness gain towards the baseline for a well-fed villager."""
    tavern = 2 if buildings.get(BuildingKind.TAVERN, 0) > 0 else 0
    temple = buildings.get(BuildingKind.TEMPLE, 0)
    philosophy = 3 if "philosophy_1" in technologies else 0
    return 2 + tavern + temple + philosophy


def maintenance_cost(buildings: Mapping[BuildingKind, int], technologies: Iterable[str]) -> Dict[str, float]:
    totals = {"wood": 0.0, "stone": 0.0, "gold": 0.0}
    for kind, count in buildings.items():
        if count <= 0:
            continue
        for resource, amount in BUILDING_MAINTENANCE.get(kind, {}).items():
            totals[resource] = round2(totals[resource] + round2(amount * count))
    if "engineering_1" in technologies:
        totals = {resource: round2(amount * 0.9) for resource, amount in totals.items()}
    return totals


def trade_price_modifiers(population: Sequence[Villager], active_farmers: float, food_multiplier: float) -> Dict[str, float]:
    """Surplus production makes goods cheap, scarcity makes them dear."""
    capacity = {
        "food": active_farmers * FARMER_WEEKLY_BASE * food_multiplier,
        "wood": sum(1 for v in population if v.job == Job.WOODCUTTER) * JOB_INCOME[Job.WOODCUTTER]["wood"],
        "stone": sum(1 for v in population if v.job == Job.MINER) * JOB_INCOME[Job.MINER]["stone"],
    }
    return {
        name: round2(clamp(TRADE_PRICE_BASE_MODIFIER - amount / TRADE_PRICE_THRESHOLDS[name], TRADE_PRICE_MIN, TRADE_PRICE_MAX))
        for name, amount in capacity.items()
    }


def needs_with_rates(
    population: Sequence[Villager],
    consumption_rate: float,
    technologies: Iterable[str],
    buildings: Mapping[BuildingKind, int],
) -> List[Tuple[Villager, float]]:
    techs = tuple(technologies)
    return [(v, food_need(v, consumption_rate, techs, buildings)) for v in population]
