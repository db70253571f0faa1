"""Event catalogue and the weighted event pool.

The pool holds pending narrative events. Fixed events are derived from the
current village (season, average happiness, food) and recomputed every time
the pool is replenished; externally generated events are appended by the
narrative collaborator. Both kinds compete in the same weighted draw and
each event is consumed at most once.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

from chronicle.population import average_happiness
from chronicle.rules import Season

if TYPE_CHECKING:
    from chronicle.state import WorldState


class EventCategory(Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    SUCCESS = "success"


class EventSource(Enum):
    EXTERNAL = "ai"
    FIXED = "fixed"
    HAPPINESS = "happiness"


SOURCE_WEIGHTS: Dict[EventSource, float] = {
    EventSource.FIXED: 1.0,
    EventSource.HAPPINESS: 1.5,
    EventSource.EXTERNAL: 2.0,
}

LOW_WATER_MARK = 5
MAX_POOL_SIZE = 40


@dataclass(frozen=True)
class Event:
    id: str
    message: str
    category: EventCategory
    delta_food: float = 0
    delta_wood: float = 0
    delta_gold: float = 0
    delta_pop: int = 0
    source: EventSource = EventSource.FIXED
    weight: float = 1.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "message": self.message,
            "category": self.category.value,
            "delta_food": self.delta_food,
            "delta_wood": self.delta_wood,
            "delta_gold": self.delta_gold,
            "delta_pop": self.delta_pop,
            "source": self.source.value,
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Event":
        return cls(
            id=str(data["id"]),
            message=str(data["message"]),
            category=EventCategory(data["category"]),
            delta_food=float(data.get("delta_food", 0)),
            delta_wood=float(data.get("delta_wood", 0)),
            delta_gold=float(data.get("delta_gold", 0)),
            delta_pop=int(data.get("delta_pop", 0)),
            source=EventSource(data.get("source", EventSource.FIXED.value)),
            weight=float(data.get("weight", 1.0)),
        )


@dataclass(frozen=True)
class EventTemplate:
    message: str
    category: EventCategory
    delta_food: float = 0
    delta_wood: float = 0
    delta_gold: float = 0
    delta_pop: int = 0

    def instantiate(self, event_id: str, source: EventSource) -> Event:
        return Event(
            id=event_id,
            message=self.message,
            category=self.category,
            delta_food=self.delta_food,
            delta_wood=self.delta_wood,
            delta_gold=self.delta_gold,
            delta_pop=self.delta_pop,
            source=source,
            weight=SOURCE_WEIGHTS[source],
        )


_S, _I, _W, _D = EventCategory.SUCCESS, EventCategory.INFO, EventCategory.WARNING, EventCategory.DANGER

POSITIVE_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("A merchant caravan passed through and left generous gifts.", _S, 50, 20, 30),
    EventTemplate("Fair weather has the crops growing tall.", _S, 100),
    EventTemplate("Villagers found a grove of wild fruit.", _S, 80),
    EventTemplate("A traveller decided to settle in the village.", _S, delta_pop=1),
    EventTemplate("The miners struck a small vein of gold.", _S, delta_gold=50),
    EventTemplate("The woodcutters found a stand of fine timber.", _S, delta_wood=60),
    EventTemplate("The villagers held a modest celebration.", _I, -20),
    EventTemplate("A wandering minstrel lifted everyone's spirits.", _S, delta_gold=10),
    EventTemplate("The hunters returned from the forest heavily laden.", _S, 60),
    EventTemplate("Gemstones were found in the river bed.", _S, delta_gold=40),
)

NEUTRAL_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("A light rain soaked the fields.", _I, 20),
    EventTemplate("The villagers rested in their spare hours.", _I),
    EventTemplate("Strange songs drifted in from far away.", _I),
    EventTemplate("A quiet week passed in the village.", _I),
    EventTemplate("Children played among the fields.", _I),
)

NEGATIVE_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("A storm damaged part of the stores.", _W, -30, -20),
    EventTemplate("Wild animals broke into the granary.", _W, -50),
    EventTemplate("Several tools broke during work.", _W, 0, -30, -10),
    EventTemplate("A dry spell stunted the crops.", _W, -40),
    EventTemplate("A mild sickness went around the village.", _W, -20, 0, -5),
    EventTemplate("Thieves stole supplies in the night.", _D, -40, 0, -30),
    EventTemplate("A fire burned part of the woodpile.", _D, 0, -50),
    EventTemplate("A small plague struck the village.", _D, -30, 0, -20, -1),
)

SEVERE_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("A fierce blizzard destroyed the reserves.", _D, -80, -60, -20),
    EventTemplate("Famine drove villagers away.", _D, -100, 0, 0, -2),
    EventTemplate("Bandits plundered the village.", _D, -60, -30, -50, -1),
)

SEASONAL_EVENTS: Dict[Season, EventTemplate] = {
    Season.WINTER: EventTemplate("The cold of winter tests the villagers' resolve.", _W, -20, -40),
    Season.SPRING: EventTemplate("Spring brings fresh hope and energy.", _S, 40),
    Season.SUMMER: EventTemplate("The summer sun makes everything flourish.", _S, 50),
    Season.AUTUMN: EventTemplate("Harvest time fills the granary.", _S, 80),
}

HAPPINESS_EVENTS: Tuple[EventTemplate, ...] = (
    EventTemplate("High spirits have the villagers working harder than ever!", _S),
    EventTemplate("Cheerful villagers threw a celebration of their own.", _S, -10, 0, 5),
    EventTemplate("Low morale is dragging down the village's work.", _W),
    EventTemplate("Discontented villagers grumble in the square.", _W, -20),
    EventTemplate("Deeply unhappy villagers are talking about leaving.", _D, delta_pop=-1),
)


@dataclass(frozen=True)
class VillageSummary:
    """What the narrative collaborator and the fallback templates see."""

    season: Season
    population: int
    average_happiness: float
    food: float

    @classmethod
    def of(cls, state: "WorldState") -> "VillageSummary":
        return cls(
            season=state.season,
            population=len(state.population),
            average_happiness=average_happiness(state.population),
            food=state.resources.food,
        )

    @property
    def food_ratio(self) -> float:
        return self.food / max(1, self.population * 50)


def general_templates(summary: VillageSummary) -> List[EventTemplate]:
    """The template bracket matching the village's mood and larder."""
    happiness = int(summary.average_happiness)
    if happiness < 40 or summary.food_ratio < 0.5:
        pool = [*SEVERE_EVENTS, *NEGATIVE_EVENTS, *NEUTRAL_EVENTS]
    elif happiness < 60 or summary.food_ratio < 1.0:
        pool = [*NEGATIVE_EVENTS, *NEUTRAL_EVENTS, *POSITIVE_EVENTS]
    else:
        pool = [*POSITIVE_EVENTS, *POSITIVE_EVENTS, *NEUTRAL_EVENTS, *NEGATIVE_EVENTS]
    pool.append(SEASONAL_EVENTS[summary.season])
    return pool


def happiness_templates(avg_happiness: float) -> List[EventTemplate]:
    if avg_happiness > 80:
        return [HAPPINESS_EVENTS[0], HAPPINESS_EVENTS[1]]
    if 40 <= avg_happiness <= 60:
        return [HAPPINESS_EVENTS[2]]
    if avg_happiness < 40:
        return [HAPPINESS_EVENTS[3], HAPPINESS_EVENTS[4]]
    return []


def fixed_events(state: "WorldState") -> List[Event]:
    """Derive the fixed subset of the pool from the current village.

    Deterministic: the same snapshot always yields the same events, so the
    subset is never persisted and is simply recomputed on replenishment.
    """
    summary = VillageSummary.of(state)
    events = [SEASONAL_EVENTS[summary.season].instantiate(f"fixed-{state.tick}-season", EventSource.FIXED)]
    for index, template in enumerate(happiness_templates(summary.average_happiness)):
        events.append(template.instantiate(f"happy-{state.tick}-{index}", EventSource.HAPPINESS))
    bracket = general_templates(summary)
    # A stable slice of the bracket keeps the subset small and reproducible.
    start = state.tick % len(bracket)
    for index in range(3):
        template = bracket[(start + index * 7) % len(bracket)]
        events.append(template.instantiate(f"fixed-{state.tick}-{index}", EventSource.FIXED))
    return events


def template_event(summary: VillageSummary, rng: random.Random, event_id: str) -> Event:
    """Stand-in for an externally generated event.

    Carries the external source and weight so the pool treats it exactly
    like the event it replaces.
    """
    template = rng.choice(general_templates(summary))
    return template.instantiate(event_id, EventSource.EXTERNAL)


def draw_event(pool: Sequence[Event], rng: random.Random) -> Tuple[Optional[Event], Tuple[Event, ...]]:
    """Weighted draw; returns the chosen event and the pool without it."""
    total = sum(e.weight for e in pool)
    if not pool or total <= 0:
        return None, tuple(pool)
    remainder = rng.random() * total
    for index, event in enumerate(pool):
        remainder -= event.weight
        if remainder <= 0:
            return event, tuple(pool[:index]) + tuple(pool[index + 1:])
    # Float residue can leave a sliver after the last weight.
    return pool[-1], tuple(pool[:-1])


def needs_replenish(pool: Sequence[Event]) -> bool:
    return len(pool) < LOW_WATER_MARK


def replenish_pool(
    pool: Sequence[Event],
    fixed: Sequence[Event] = (),
    external: Sequence[Event] = (),
) -> Tuple[Event, ...]:
    """Swap in a fresh fixed subset and append new external events.

    Stale fixed and happiness events are pruned only when a fresh fixed
    subset replaces them. The oldest events go first once the pool is full.
    """
    if fixed:
        kept = [e for e in pool if e.source == EventSource.EXTERNAL]
    else:
        kept = list(pool)
    seen = {e.id for e in kept}
    merged = list(kept)
    for event in [*fixed, *external]:
        if event.id in seen:
            continue
        seen.add(event.id)
        merged.append(event)
    return tuple(merged[-MAX_POOL_SIZE:])
