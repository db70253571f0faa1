"""Static rule tables for the village.

Pure data plus a couple of lookups. Every other module consults these
tables; nothing here changes at runtime.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Tuple

from chronicle.numeric import round2


class Job(Enum):
    UNEMPLOYED = "Unemployed"
    FARMER = "Farmer"
    WOODCUTTER = "Woodcutter"
    MINER = "Miner"
    GUARD = "Guard"
    SCHOLAR = "Scholar"
    CHILD = "Child"


class Activity(Enum):
    IDLE = "Idle"
    WORKING = "Working"
    EATING = "Eating"
    RESTING = "Resting"
    SOCIALIZING = "Socializing"
    FREEZING = "Freezing"


class Season(Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    AUTUMN = "Autumn"
    WINTER = "Winter"


class Difficulty(Enum):
    EASY = "Easy"
    NORMAL = "Normal"
    HARD = "Hard"


class GameStatus(Enum):
    MENU = "Menu"
    PLAYING = "Playing"
    FINISHED = "Finished"


class FoodPriority(Enum):
    EQUAL = "Equal"
    CHILDREN_FIRST = "ChildrenFirst"
    WORKERS_FIRST = "WorkersFirst"
    ELDERLY_LAST = "ElderlyLast"


class Resource(Enum):
    FOOD = "food"
    WOOD = "wood"
    STONE = "stone"
    GOLD = "gold"
    KNOWLEDGE = "knowledge"


class BuildingKind(Enum):
    HOUSE = "House"
    MARKET = "Market"
    STONE_WALL = "StoneWall"
    LIBRARY = "Library"
    TAVERN = "Tavern"
    CATHEDRAL = "Cathedral"
    FARM = "Farm"
    LUMBER_MILL = "LumberMill"
    MINE = "Mine"
    WATCHTOWER = "Watchtower"
    GRANARY = "Granary"
    BLACKSMITH = "Blacksmith"
    TEMPLE = "Temple"
    UNIVERSITY = "University"
    WORKSHOP = "Workshop"
    BARRACKS = "Barracks"
    STABLES = "Stables"
    AQUEDUCT = "Aqueduct"
    TRAINING_GROUNDS = "TrainingGrounds"
    ALCHEMIST = "Alchemist"


# Time
WEEKS_PER_YEAR = 52
MAX_YEARS = 10
GAME_END_TICK = WEEKS_PER_YEAR * MAX_YEARS
SPRING_END = 13
SUMMER_END = 26
AUTUMN_END = 39

MAX_FOOD = 999999.0
ADULT_AGE = 16
ELDER_AGE = 60


@dataclass(frozen=True)
class DifficultyProfile:
    name: str
    description: str
    consumption_rate: float
    production_multiplier: float
    starting_resources: Mapping[str, float]
    starting_population: int


DIFFICULTY_SETTINGS: Dict[Difficulty, DifficultyProfile] = {
    Difficulty.EASY: DifficultyProfile(
        name="Serf (Easy)",
        description="Plenty of supplies and gentle upkeep, made for relaxed building.",
        consumption_rate=0.8,
        production_multiplier=1.2,
        starting_resources={"food": 500, "wood": 150, "stone": 50, "gold": 50, "knowledge": 20},
        starting_population=25,
    ),
    Difficulty.NORMAL: DifficultyProfile(
        name="Knight (Normal)",
        description="The standard survival challenge.",
        consumption_rate=1.0,
        production_multiplier=1.0,
        starting_resources={"food": 300, "wood": 100, "stone": 30, "gold": 30, "knowledge": 0},
        starting_population=20,
    ),
    Difficulty.HARD: DifficultyProfile(
        name="Lord (Hard)",
        description="Bitter winters, hungry mouths and empty storehouses.",
        consumption_rate=1.2,
        production_multiplier=0.9,
        starting_resources={"food": 300, "wood": 50, "stone": 0, "gold": 0, "knowledge": 0},
        starting_population=15,
    ),
}

# Per worker per week. Farmers feed the harvest step instead.
JOB_INCOME: Dict[Job, Dict[str, float]] = {
    Job.UNEMPLOYED: {},
    Job.CHILD: {},
    Job.FARMER: {},
    Job.WOODCUTTER: {"wood": 20},
    Job.MINER: {"stone": 7, "gold": 3},
    Job.GUARD: {},
    Job.SCHOLAR: {"knowledge": 10},
}
FARMER_WEEKLY_BASE = 32

ADULT_FOOD = 21
CHILD_FOOD = 10
WINTER_WOOD_PER_CAPITA = 7

SEASON_FOOD_MULTIPLIER: Dict[Season, float] = {
    Season.SPRING: 0.9,
    Season.SUMMER: 1.0,
    Season.AUTUMN: 2.0,
    Season.WINTER: 0.4,
}

BUILDING_COSTS: Dict[BuildingKind, Dict[str, float]] = {
    BuildingKind.HOUSE: {"wood": 30, "stone": 3, "gold": 0},
    BuildingKind.MARKET: {"wood": 60, "stone": 15, "gold": 30},
    BuildingKind.STONE_WALL: {"wood": 0, "stone": 100, "gold": 0},
    BuildingKind.LIBRARY: {"wood": 60, "stone": 200, "gold": 0},
    BuildingKind.TAVERN: {"wood": 100, "stone": 60, "gold": 60},
    BuildingKind.CATHEDRAL: {"wood": 0, "stone": 350, "gold": 200},
    BuildingKind.FARM: {"wood": 50, "stone": 5, "gold": 15},
    BuildingKind.LUMBER_MILL: {"wood": 80, "stone": 20, "gold": 20},
    BuildingKind.MINE: {"wood": 60, "stone": 30, "gold": 30},
    BuildingKind.WATCHTOWER: {"wood": 50, "stone": 60, "gold": 25},
    BuildingKind.GRANARY: {"wood": 60, "stone": 30, "gold": 20},
    BuildingKind.BLACKSMITH: {"wood": 60, "stone": 50, "gold": 60},
    BuildingKind.TEMPLE: {"wood": 100, "stone": 120, "gold": 100},
    BuildingKind.UNIVERSITY: {"wood": 120, "stone": 250, "gold": 200},
    BuildingKind.WORKSHOP: {"wood": 70, "stone": 40, "gold": 50},
    BuildingKind.BARRACKS: {"wood": 80, "stone": 70, "gold": 40},
    BuildingKind.STABLES: {"wood": 90, "stone": 30, "gold": 60},
    BuildingKind.AQUEDUCT: {"wood": 50, "stone": 150, "gold": 80},
    BuildingKind.TRAINING_GROUNDS: {"wood": 60, "stone": 80, "gold": 50},
    BuildingKind.ALCHEMIST: {"wood": 80, "stone": 60, "gold": 100},
}

FESTIVAL_COST = {"gold": 60, "food": 120}
FESTIVAL_HAPPINESS = 30

BUILDING_MAINTENANCE: Dict[BuildingKind, Dict[str, float]] = {
    BuildingKind.HOUSE: {"wood": 0.5, "gold": 0.2},
    BuildingKind.MARKET: {"wood": 1, "gold": 1},
    BuildingKind.STONE_WALL: {"stone": 0.5},
    BuildingKind.LIBRARY: {"wood": 1, "gold": 0.5},
    BuildingKind.TAVERN: {"wood": 1.5, "gold": 1.5},
    BuildingKind.CATHEDRAL: {"wood": 2, "stone": 1, "gold": 2},
    BuildingKind.FARM: {"wood": 0.5, "gold": 0.3},
    BuildingKind.LUMBER_MILL: {"wood": 1, "gold": 0.5},
    BuildingKind.MINE: {"wood": 1, "stone": 0.5, "gold": 0.5},
    BuildingKind.WATCHTOWER: {"wood": 1, "gold": 0.5},
    BuildingKind.GRANARY: {"wood": 0.8, "gold": 0.3},
    BuildingKind.BLACKSMITH: {"wood": 1.5, "gold": 1},
    BuildingKind.TEMPLE: {"wood": 1.5, "gold": 1},
    BuildingKind.UNIVERSITY: {"wood": 2, "stone": 0.5, "gold": 1.5},
    BuildingKind.WORKSHOP: {"wood": 1, "gold": 0.8},
    BuildingKind.BARRACKS: {"wood": 1.5, "gold": 1},
    BuildingKind.STABLES: {"wood": 2, "gold": 1.5},
    BuildingKind.AQUEDUCT: {"stone": 1, "gold": 0.5},
    BuildingKind.TRAINING_GROUNDS: {"wood": 1, "gold": 0.8},
    BuildingKind.ALCHEMIST: {"wood": 1, "gold": 1.2},
}

STARTING_BUILDINGS: Dict[BuildingKind, int] = {kind: 0 for kind in BuildingKind}
STARTING_BUILDINGS[BuildingKind.HOUSE] = 4

HOUSE_CAPACITY_BASE = 5
HOUSE_CAPACITY_UPGRADED = 8

GUARD_COVERAGE_BASE = 10
GUARD_COVERAGE_UPGRADED = 15
# Extra people each building lets a single guard cover.
GUARD_BUILDING_BONUS: Dict[BuildingKind, int] = {
    BuildingKind.STONE_WALL: 5,
    BuildingKind.WATCHTOWER: 3,
    BuildingKind.BARRACKS: 2,
    BuildingKind.TRAINING_GROUNDS: 2,
}
CAVALRY_STABLES_BONUS = 3

# Trade
TRADE_AMOUNT = 10
TRADE_RATES: Dict[str, Dict[str, int]] = {
    "food": {"buy": 5, "sell": 2},
    "wood": {"buy": 10, "sell": 4},
    "stone": {"buy": 25, "sell": 10},
}
TRADE_PRICE_BASE_MODIFIER = 2.0
TRADE_PRICE_THRESHOLDS: Dict[str, float] = {"food": 320, "wood": 100, "stone": 35}
TRADE_PRICE_MIN = 0.5
TRADE_PRICE_MAX = 2.0


@dataclass(frozen=True)
class Technology:
    id: str
    name: str
    description: str
    cost: int


TECH_TREE: Tuple[Technology, ...] = (
    # Tier 1
    Technology("tools_1", "Iron Tools", "Sharper tools. Woodcutter and miner output +20%.", 80),
    Technology("farming_1", "Crop Rotation", "Better sowing. Farmer output +20%.", 100),
    # Tier 2
    Technology("archery_1", "Archery Drills", "Each guard secures 15 villagers instead of 10.", 150),
    Technology("forestry_1", "Forestry", "Managed felling. Woodcutter output another +20%.", 150),
    Technology("scribing_1", "Scribes", "Each scholar records +7 knowledge per week.", 180),
    # Tier 3
    Technology("medicine_1", "Herbalism", "Halves old-age mortality and speeds up healing.", 250),
    Technology("irrigation_1", "Irrigation", "Canals for the fields. Farmer output another +20%.", 300),
    Technology("masonry_1", "Masonry", "Sturdier houses hold 8 villagers instead of 5.", 400),
    # Tier 4
    Technology("metallurgy_1", "Metallurgy", "Refined ore. Miner output +30%.", 500),
    Technology("engineering_1", "Engineering", "Construction and maintenance costs -10%.", 550),
    Technology("preservation_1", "Preservation", "Salting and smoking. Food consumption -10%.", 600),
    Technology("cavalry_1", "Cavalry", "Each stable adds +3 guard coverage.", 650),
    # Tier 5
    Technology("alchemy_1", "Alchemy", "Arcane study. +15 knowledge every week.", 800),
    Technology("architecture_1", "Architecture", "All building bonuses +20%.", 850),
    Technology("philosophy_1", "Philosophy", "Villagers recover their spirits faster.", 900),
    Technology("advanced_farming", "Advanced Farming", "Farmer output another +30%.", 950),
)
TECHS_BY_ID: Dict[str, Technology] = {tech.id: tech for tech in TECH_TREE}

NAMES_MALE = (
    "Arthur", "Bernard", "Charles", "David", "Edward", "Fred", "George", "Henry",
    "Ian", "Jack", "Kevin", "Leo", "Martin", "Noah", "Oliver", "Peter", "Quentin",
    "Robert", "Steven", "Thomas", "Ulric", "Victor", "William",
)
NAMES_FEMALE = (
    "Adele", "Beatrice", "Clara", "Diana", "Eleanor", "Fiona", "Grace", "Helen",
    "Isabel", "Jenny", "Kate", "Lucy", "Mary", "Nora", "Ophelia", "Penny", "Queenie",
    "Ruth", "Sarah", "Tessa", "Ursula", "Vivian", "Wendy",
)
SURNAMES = (
    "Smith", "Miller", "Baker", "Carter", "Fisher", "Glover", "Hayward",
    "Tanner", "Taylor", "Ward", "Weaver", "Wood", "Reed", "Cooper",
)
NAME_SEPARATOR = " "


def season_for_tick(tick: int) -> Season:
    week = tick % WEEKS_PER_YEAR
    if week < SPRING_END:
        return Season.SPRING
    if week < SUMMER_END:
        return Season.SUMMER
    if week < AUTUMN_END:
        return Season.AUTUMN
    return Season.WINTER


def game_year(tick: int) -> int:
    """1-based in-game year for a tick."""
    return tick // WEEKS_PER_YEAR + 1


def housing_capacity(buildings: Mapping[BuildingKind, int], technologies: Iterable[str]) -> int:
    per_house = HOUSE_CAPACITY_UPGRADED if "masonry_1" in technologies else HOUSE_CAPACITY_BASE
    return buildings.get(BuildingKind.HOUSE, 0) * per_house


def construction_cost(kind: BuildingKind, technologies: Iterable[str]) -> Dict[str, float]:
    """Cost of one building after the engineering discount."""
    discount = 0.9 if "engineering_1" in technologies else 1.0
    return {res: round2(amount * discount) for res, amount in BUILDING_COSTS[kind].items()}


def total_buildings(buildings: Mapping[BuildingKind, int]) -> int:
    return sum(buildings.values())


def years_elapsed(tick: int) -> int:
    return math.floor(tick / WEEKS_PER_YEAR)
