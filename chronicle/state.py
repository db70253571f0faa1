"""The world-state snapshot.

A ``WorldState`` is never mutated: every accepted action produces a new
snapshot with ``dataclasses.replace``. Collections are tuples and the
building counts are a read-only mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from chronicle.events import Event
from chronicle.numeric import clamp, round2
from chronicle.population import Villager
from chronicle.rules import (
    DIFFICULTY_SETTINGS,
    MAX_FOOD,
    STARTING_BUILDINGS,
    BuildingKind,
    Difficulty,
    DifficultyProfile,
    FoodPriority,
    GameStatus,
    Season,
)

MAX_LOG_ENTRIES = 1000
MAX_HISTORY_POINTS = 260
DENSE_HISTORY_POINTS = 200

RESOURCE_NAMES = ("food", "wood", "stone", "gold", "knowledge")
TRADABLE = ("food", "wood", "stone")


@dataclass(frozen=True)
class Resources:
    food: float = 0.0
    wood: float = 0.0
    stone: float = 0.0
    gold: float = 0.0
    knowledge: float = 0.0

    def get(self, name: str) -> float:
        return getattr(self, name)

    def settled(self, **changes: float) -> "Resources":
        """Apply changes, rounding and clamping every resource."""
        values = {name: changes.get(name, self.get(name)) for name in RESOURCE_NAMES}
        values = {name: round2(max(0.0, amount)) for name, amount in values.items()}
        values["food"] = round2(clamp(values["food"], 0.0, MAX_FOOD))
        return Resources(**values)

    def to_dict(self) -> Dict[str, float]:
        return {name: self.get(name) for name in RESOURCE_NAMES}

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "Resources":
        return cls(**{name: float(data.get(name, 0)) for name in RESOURCE_NAMES})


@dataclass(frozen=True)
class GameStats:
    total_births: int = 0
    total_deaths: int = 0
    peak_population: int = 0
    total_food_produced: float = 0.0
    total_gold_mined: float = 0.0
    festivals_held: int = 0
    starvation_days: int = 0
    invasions_repelled: int = 0
    raids_survived: int = 0

    def to_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "GameStats":
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LogEntry:
    tick: int
    message: str
    kind: str = "info"

    def to_dict(self) -> Dict[str, object]:
        return {"tick": self.tick, "message": self.message, "kind": self.kind}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "LogEntry":
        return cls(tick=int(data["tick"]), message=str(data["message"]), kind=str(data.get("kind", "info")))


@dataclass(frozen=True)
class HistoryPoint:
    tick: int
    population: int
    food: int


def freeze_buildings(counts: Mapping[BuildingKind, int]) -> Mapping[BuildingKind, int]:
    full = {kind: int(counts.get(kind, 0)) for kind in BuildingKind}
    return MappingProxyType(full)


def default_trade_modifiers() -> Mapping[str, float]:
    return MappingProxyType({name: 1.0 for name in TRADABLE})


@dataclass(frozen=True)
class WorldState:
    status: GameStatus = GameStatus.MENU
    difficulty: Difficulty = Difficulty.NORMAL
    tick: int = 0
    season: Season = Season.SPRING
    resources: Resources = field(default_factory=Resources)
    buildings: Mapping[BuildingKind, int] = field(default_factory=lambda: freeze_buildings(STARTING_BUILDINGS))
    technologies: Tuple[str, ...] = ()
    population: Tuple[Villager, ...] = ()
    event_pool: Tuple[Event, ...] = ()
    food_priority: FoodPriority = FoodPriority.EQUAL
    trade_price_modifiers: Mapping[str, float] = field(default_factory=default_trade_modifiers)
    stats: GameStats = field(default_factory=GameStats)
    log: Tuple[LogEntry, ...] = ()
    history: Tuple[HistoryPoint, ...] = ()
    paused: bool = True
    ending_type: Optional[str] = None
    ending_reason: Optional[str] = None
    ending_summary: Optional[str] = None

    @property
    def profile(self) -> DifficultyProfile:
        return DIFFICULTY_SETTINGS[self.difficulty]

    @property
    def is_running(self) -> bool:
        return self.status == GameStatus.PLAYING and not self.paused

    def has_tech(self, tech_id: str) -> bool:
        return tech_id in self.technologies

    def building(self, kind: BuildingKind) -> int:
        return self.buildings.get(kind, 0)

    def with_log(self, *entries: LogEntry) -> "WorldState":
        return replace(self, log=append_log(self.log, entries))

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "difficulty": self.difficulty.value,
            "tick": self.tick,
            "season": self.season.value,
            "resources": self.resources.to_dict(),
            "buildings": {kind.value: count for kind, count in self.buildings.items()},
            "technologies": list(self.technologies),
            "population": [v.to_dict() for v in self.population],
            "event_pool": [e.to_dict() for e in self.event_pool],
            "food_priority": self.food_priority.value,
            "trade_price_modifiers": dict(self.trade_price_modifiers),
            "stats": self.stats.to_dict(),
            "log": [entry.to_dict() for entry in self.log],
            "history": [[p.tick, p.population, p.food] for p in self.history],
            "paused": self.paused,
            "ending_type": self.ending_type,
            "ending_reason": self.ending_reason,
            "ending_summary": self.ending_summary,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "WorldState":
        buildings = {BuildingKind(name): count for name, count in data.get("buildings", {}).items()}
        modifiers = data.get("trade_price_modifiers") or {}
        return cls(
            status=GameStatus(data["status"]),
            difficulty=Difficulty(data["difficulty"]),
            tick=int(data["tick"]),
            season=Season(data["season"]),
            resources=Resources.from_dict(data["resources"]),
            buildings=freeze_buildings(buildings),
            technologies=tuple(data.get("technologies", ())),
            population=tuple(Villager.from_dict(v) for v in data.get("population", ())),
            event_pool=tuple(Event.from_dict(e) for e in data.get("event_pool", ())),
            food_priority=FoodPriority(data.get("food_priority", FoodPriority.EQUAL.value)),
            trade_price_modifiers=MappingProxyType(
                {name: float(modifiers.get(name, 1.0)) for name in TRADABLE}
            ),
            stats=GameStats.from_dict(data.get("stats", {})),
            log=tuple(LogEntry.from_dict(entry) for entry in data.get("log", ())),
            history=tuple(HistoryPoint(*point) for point in data.get("history", ())),
            paused=bool(data.get("paused", True)),
            ending_type=data.get("ending_type"),
            ending_reason=data.get("ending_reason"),
            ending_summary=data.get("ending_summary"),
        )


def append_log(log: Tuple[LogEntry, ...], entries: Iterable[LogEntry]) -> Tuple[LogEntry, ...]:
    return (log + tuple(entries))[-MAX_LOG_ENTRIES:]


def record_history(history: Tuple[HistoryPoint, ...], tick: int, population: int, food: float) -> Tuple[HistoryPoint, ...]:
    """Sample every tick until the series is dense, then every other tick."""
    if len(history) >= DENSE_HISTORY_POINTS and tick % 2 != 0:
        return history
    point = HistoryPoint(tick=tick, population=population, food=int(food))
    return (history + (point,))[-MAX_HISTORY_POINTS:]


def initial_state() -> WorldState:
    """The menu screen before any game has started."""
    profile = DIFFICULTY_SETTINGS[Difficulty.NORMAL]
    return WorldState(resources=Resources.from_dict(profile.starting_resources))
