"""Villager records and the population generator."""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from chronicle.rules import (
    ADULT_AGE,
    NAME_SEPARATOR,
    NAMES_FEMALE,
    NAMES_MALE,
    SURNAMES,
    Activity,
    Job,
)


@dataclass(frozen=True)
class Villager:
    id: str
    name: str
    age: int
    job: Job
    happiness: float
    happiness_baseline: float
    health: float
    hunger: float
    energy: float
    current_activity: Activity = Activity.IDLE
    bio: Optional[str] = None
    last_bio_year: int = 0

    @property
    def first_name(self) -> str:
        return self.name.split(NAME_SEPARATOR, 1)[0]

    @property
    def surname(self) -> str:
        parts = self.name.split(NAME_SEPARATOR, 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def is_adult(self) -> bool:
        return self.age >= ADULT_AGE

    @property
    def is_male(self) -> bool:
        return self.first_name in NAMES_MALE

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "job": self.job.value,
            "happiness": self.happiness,
            "happiness_baseline": self.happiness_baseline,
            "health": self.health,
            "hunger": self.hunger,
            "energy": self.energy,
            "current_activity": self.current_activity.value,
            "bio": self.bio,
            "last_bio_year": self.last_bio_year,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Villager":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            age=int(data["age"]),
            job=Job(data["job"]),
            happiness=float(data["happiness"]),
            happiness_baseline=float(data.get("happiness_baseline", 50)),
            health=float(data["health"]),
            hunger=float(data["hunger"]),
            energy=float(data.get("energy", 50)),
            current_activity=Activity(data.get("current_activity", Activity.IDLE.value)),
            bio=data.get("bio"),
            last_bio_year=int(data.get("last_bio_year") or 0),
        )


def _new_id(rng: random.Random) -> str:
    return f"{rng.getrandbits(40):010x}"


def generate_villager(rng: random.Random, age: Optional[int] = None) -> Villager:
    """Roll a villager.

    With no age the villager is a founding settler aged 16-55 and may start
    with a job. An explicit age is used for newborns and immigrants, who
    start as children or unemployed adults.
    """
    is_male = rng.random() > 0.5
    first = rng.choice(NAMES_MALE if is_male else NAMES_FEMALE)
    last = rng.choice(SURNAMES)
    villager_age = age if age is not None else rng.randrange(40) + ADULT_AGE

    job = Job.UNEMPLOYED
    if villager_age < ADULT_AGE:
        job = Job.CHILD
    elif age is None:
        roll = rng.random()
        if roll < 0.6:
            job = Job.FARMER
        elif roll < 0.75:
            job = Job.WOODCUTTER
        elif roll < 0.85:
            job = Job.MINER

    return Villager(
        id=_new_id(rng),
        name=f"{first}{NAME_SEPARATOR}{last}",
        age=villager_age,
        job=job,
        happiness=70 + rng.randrange(30),
        happiness_baseline=50,
        health=80 + rng.randrange(20),
        hunger=rng.randrange(30),
        energy=50 + rng.randrange(50),
    )


def generate_newborn(rng: random.Random, parent: Villager) -> Villager:
    """A baby inherits the parent's surname and nothing else."""
    baby = generate_villager(rng, age=0)
    if not parent.surname:
        return baby
    return replace(baby, name=f"{baby.first_name}{NAME_SEPARATOR}{parent.surname}")


def generate_initial_population(size: int, rng: random.Random) -> List[Villager]:
    return [generate_villager(rng) for _ in range(size)]


def average_happiness(population: Sequence[Villager]) -> float:
    if not population:
        return 0.0
    return sum(v.happiness for v in population) / len(population)


def count_job(population: Sequence[Villager], job: Job) -> int:
    return sum(1 for v in population if v.job == job)
