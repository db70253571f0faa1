"""Client for the narrative service.

The service writes flavour text: random events, villager biographies and the
ending summary. It is never trusted: every failure degrades to a local
template so the game carries on without it.
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Dict, List, Tuple

import requests

from chronicle.endings import fallback_summary
from chronicle.events import Event, EventCategory, EventSource, SOURCE_WEIGHTS, VillageSummary, template_event
from chronicle.population import Villager
from chronicle.rules import Job, years_elapsed

if TYPE_CHECKING:
    from chronicle.state import WorldState

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3001"
DEFAULT_TIMEOUT = 10

BIO_TEMPLATES: Dict[Job, Tuple[str, ...]] = {
    Job.FARMER: (
        "{name} has worked the fields since childhood and loves the soil. {their} rough hands grow the sweetest grain in the valley.",
        "{name} inherited the family plough and believes only honest sweat brings a good harvest.",
        "{name} lived through the great famine and has never wasted a single grain since.",
    ),
    Job.WOODCUTTER: (
        "{name}'s father was a legendary woodcutter, and {they} learned early to respect the forest.",
        "{name} is built like an oak and is said to fell the thickest trunk with one swing.",
        "{name} hums old ballads while chopping. The villagers swear the trees fall easier for it.",
    ),
    Job.MINER: (
        "{name} hunts for treasure deep underground, eyes long used to the dark.",
        "{name} was once lost in the mine for three days and came out with an uncanny sense of direction.",
        "{name} dreams of striking the fabled dragon-gold vein one day.",
    ),
    Job.GUARD: (
        "{name} was a sellsword who settled in this quiet village after too many battles.",
        "{name} lost family to bandits and swore to protect every innocent life.",
        "{name} is a stern guard by day and tells hero tales to the children by night.",
    ),
    Job.SCHOLAR: (
        "{name} wandered far collecting lore and legends before settling here.",
        "{name}'s study overflows with manuscripts. {they} believe knowledge can change the world.",
        "{name} knows letters and herbs alike, and the sick always come knocking.",
    ),
    Job.UNEMPLOYED: (
        "{name} has tried many trades and is still looking for the right one.",
        "{name} is a free spirit who refuses to be tied to any single job.",
        "{name} has no steady work but is the best storyteller in the village.",
    ),
    Job.CHILD: (
        "{name} is one of the naughtiest children in the village and is always off exploring.",
        "{name} follows the grown-ups everywhere, dreaming of becoming a village hero.",
        "{name}'s laughter can be heard in every corner of the village.",
    ),
}


def fallback_bio(villager: Villager, rng: random.Random) -> str:
    templates = BIO_TEMPLATES.get(villager.job) or BIO_TEMPLATES[Job.UNEMPLOYED]
    they, their = ("he", "His") if villager.is_male else ("she", "Her")
    return rng.choice(templates).format(name=villager.name, they=they, their=their)


def parse_event(data: Dict[str, object], event_id: str) -> Event:
    """Build an external event from a service payload.

    Raises ``KeyError``, ``ValueError`` or ``TypeError`` on malformed data.
    """
    message = str(data["message"]).strip()
    if not message:
        raise ValueError("empty event message")
    return Event(
        id=event_id,
        message=message,
        category=EventCategory(data.get("type", "info")),
        delta_food=float(data.get("deltaFood", 0)),
        delta_wood=float(data.get("deltaWood", 0)),
        delta_gold=float(data.get("deltaGold", 0)),
        delta_pop=int(data.get("deltaPop", 0)),
        source=EventSource.EXTERNAL,
        weight=SOURCE_WEIGHTS[EventSource.EXTERNAL],
    )


class NarrativeClient:
    """Thin ``requests`` wrapper with template fallbacks."""

    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: float = DEFAULT_TIMEOUT, max_workers: int = 5):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_workers = max_workers

    def _post(self, path: str, payload: Dict[str, object]) -> Dict[str, object]:
        r = requests.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        if r.status_code != 200:
            raise ValueError(f"{path} answered {r.status_code}")
        data = r.json()
        if not isinstance(data, dict):
            raise TypeError(f"{path} returned {type(data).__name__}")
        return data

    def generate_event(self, summary: VillageSummary, rng: random.Random, event_id: str) -> Event:
        payload = {
            "state": {
                "season": summary.season.value,
                "population": summary.population,
                "food": summary.food,
                "averageHappiness": int(summary.average_happiness),
            }
        }
        try:
            return parse_event(self._post("/api/generate-event", payload), event_id)
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning("Event generation failed, using a template: %s", e)
            return template_event(summary, rng, event_id)

    def generate_events_batch(
        self, summary: VillageSummary, rng: random.Random, count: int, id_prefix: str
    ) -> List[Event]:
        """Request ``count`` events in parallel; results keep request order."""
        if count <= 0:
            return []
        # One child generator per request keeps the fallbacks reproducible.
        seeds = [rng.getrandbits(32) for _ in range(count)]
        ids = [f"{id_prefix}-{i}" for i in range(count)]
        with ThreadPoolExecutor(max_workers=min(count, self.max_workers)) as pool:
            futures = [
                pool.submit(self.generate_event, summary, random.Random(seed), event_id)
                for seed, event_id in zip(seeds, ids)
            ]
            return [f.result() for f in futures]

    def generate_bio(self, villager: Villager, year: int, summary: VillageSummary, rng: random.Random) -> str:
        """One sentence about what happened to ``villager`` during ``year``."""
        payload = {
            "villager": {"name": villager.name, "age": villager.age, "job": villager.job.value, "bio": villager.bio},
            "year": year,
            "village": {
                "season": summary.season.value,
                "population": summary.population,
                "avgHappiness": summary.average_happiness,
            },
        }
        try:
            bio = str(self._post("/api/generate-bio", payload)["bio"]).strip()
            if bio:
                return bio
            raise ValueError("empty biography")
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning("Biography for %s failed, using a template: %s", villager.name, e)
            return fallback_bio(villager, rng)

    def generate_ending_summary(self, state: "WorldState") -> str:
        payload = {
            "state": {
                "tick": state.tick,
                "years": years_elapsed(state.tick),
                "population": len(state.population),
                "difficulty": state.difficulty.value,
                "stats": state.stats.to_dict(),
            },
            "endingType": state.ending_type,
            "endingReason": state.ending_reason,
        }
        try:
            summary = str(self._post("/api/generate-ending", payload)["summary"]).strip()
            if summary:
                return summary
            raise ValueError("empty summary")
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning("Ending summary failed, using a template: %s", e)
            return fallback_summary(state)


def bio_candidates(population: Tuple[Villager, ...], year: int, limit: int = 5) -> List[Villager]:
    """Villagers whose biography is older than ``year``, at most ``limit``."""
    return [v for v in population if v.last_bio_year < year][:limit]
