"""Actions accepted by the transition function."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple, Union

from chronicle.events import Event
from chronicle.rules import BuildingKind, Difficulty, FoodPriority, Job

if TYPE_CHECKING:
    from chronicle.state import WorldState


@dataclass(frozen=True)
class StartGame:
    difficulty: Difficulty = Difficulty.NORMAL


@dataclass(frozen=True)
class AdvanceTick:
    pass


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class AssignJob:
    job: Job
    amount: int


@dataclass(frozen=True)
class Construct:
    building: BuildingKind


@dataclass(frozen=True)
class Research:
    tech_id: str


@dataclass(frozen=True)
class Trade:
    resource: str
    side: str  # "buy" or "sell"


@dataclass(frozen=True)
class SetFoodPriority:
    priority: FoodPriority


@dataclass(frozen=True)
class HoldFestival:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class InitEventPool:
    events: Tuple[Event, ...]


@dataclass(frozen=True)
class ReplenishEventPool:
    events: Tuple[Event, ...]


@dataclass(frozen=True)
class TriggerEvent:
    event_id: str


@dataclass(frozen=True)
class UpdateBio:
    villager_id: str
    bio: str
    year: Optional[int] = None


@dataclass(frozen=True)
class UpdateEndingSummary:
    summary: str


@dataclass(frozen=True)
class LoadState:
    state: "WorldState"


Action = Union[
    StartGame,
    AdvanceTick,
    TogglePause,
    AssignJob,
    Construct,
    Research,
    Trade,
    SetFoodPriority,
    HoldFestival,
    Restart,
    InitEventPool,
    ReplenishEventPool,
    TriggerEvent,
    UpdateBio,
    UpdateEndingSummary,
    LoadState,
]
