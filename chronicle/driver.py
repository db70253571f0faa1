"""Host-side action stream.

The driver owns the current snapshot and feeds every action through
``transition`` strictly in order. Narrative requests run on background
threads and come back as ordinary actions tagged with the session that
asked for them; anything from an older session is dropped.
"""

from __future__ import annotations

import logging
import queue
import random
import threading
from typing import Callable, Optional, Tuple

from chronicle.actions import (
    Action,
    AdvanceTick,
    InitEventPool,
    LoadState,
    ReplenishEventPool,
    Restart,
    StartGame,
    UpdateBio,
    UpdateEndingSummary,
)
from chronicle.config import CONFIG, DriverConfig
from chronicle.events import VillageSummary, needs_replenish
from chronicle.narrative import NarrativeClient, bio_candidates
from chronicle.persistence import SnapshotStore
from chronicle.rules import GameStatus, game_year
from chronicle.state import WorldState, initial_state
from chronicle.transition import transition

logger = logging.getLogger(__name__)

# Actions that begin a new session and invalidate pending requests.
SESSION_ACTIONS = (StartGame, Restart, LoadState)


class GameDriver:
    def __init__(
        self,
        config: DriverConfig = CONFIG,
        client: Optional[NarrativeClient] = None,
        store: Optional[SnapshotStore] = None,
        rng: Optional[random.Random] = None,
        background: bool = True,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.client = client or NarrativeClient(config.api_url, config.api_timeout)
        self.store = store or SnapshotStore(
            config.save_path,
            max_log_entries=config.max_saved_log_entries,
            max_history_points=config.max_saved_history_points,
            max_bytes=config.max_save_bytes,
        )
        self.background = background
        self.state: WorldState = initial_state()
        self.session = 0
        self._queue: "queue.Queue[Tuple[Optional[int], Action]]" = queue.Queue()
        self._reset_requests()

    def _reset_requests(self):
        self._pool_busy = False
        self._bio_busy = False
        self._ending_requested = False

    # ------------------------------------------------------------------
    # Action stream
    # ------------------------------------------------------------------
    def submit(self, action: Action, session: Optional[int] = None):
        """Queue an action. ``session`` marks a late collaborator result."""
        self._queue.put((session, action))

    def process(self) -> WorldState:
        """Apply every queued action in FIFO order."""
        while True:
            try:
                session, action = self._queue.get_nowait()
            except queue.Empty:
                return self.state
            if session is not None and session != self.session:
                logger.debug("Dropping %s from stale session %d", type(action).__name__, session)
                continue
            self.dispatch(action)

    def dispatch(self, action: Action) -> WorldState:
        before = self.state
        if isinstance(action, SESSION_ACTIONS):
            self.session += 1
            self._reset_requests()
        self.state = transition(before, action, self.rng)
        self._after(before, action)
        return self.state

    def resume(self) -> bool:
        """Load the saved game, if any."""
        saved = self.store.load()
        if saved is None:
            return False
        self.dispatch(LoadState(saved))
        logger.info("Resumed a saved game at tick %d", saved.tick)
        return True

    # ------------------------------------------------------------------
    # Cadences
    # ------------------------------------------------------------------
    def _after(self, before: WorldState, action: Action):
        state = self.state
        if isinstance(action, StartGame) and state.status == GameStatus.PLAYING:
            self.store.save(state)
            self._request_events(self.config.initial_event_batch, initial=True)
        elif isinstance(action, Restart):
            self.store.clear()
        elif isinstance(action, LoadState) and state.status == GameStatus.PLAYING and not state.event_pool:
            self._request_events(self.config.initial_event_batch, initial=True)

        if state.status == GameStatus.PLAYING and isinstance(action, AdvanceTick) and state.tick != before.tick:
            if state.tick % self.config.save_interval_ticks == 0:
                self.store.save(state)
            if state.tick % self.config.replenish_interval_ticks == 0 and needs_replenish(state.event_pool):
                self._request_events(self.config.replenish_event_batch, initial=False)
            self._request_bios()

        if state.status == GameStatus.FINISHED and before.status != GameStatus.FINISHED:
            self.store.save(state)
            self._request_ending()

    def _run(self, job: Callable[[], None]):
        if self.background:
            threading.Thread(target=job, daemon=True).start()
        else:
            job()

    def _request_events(self, count: int, initial: bool):
        if self._pool_busy:
            return
        self._pool_busy = True
        session = self.session
        summary = VillageSummary.of(self.state)
        rng = random.Random(self.rng.getrandbits(32))
        prefix = f"ai-{session}-{self.state.tick}"

        def job():
            events = tuple(self.client.generate_events_batch(summary, rng, count, prefix))
            action = InitEventPool(events) if initial else ReplenishEventPool(events)
            self.submit(action, session)
            if self.session == session:
                self._pool_busy = False

        self._run(job)

    def _request_bios(self):
        if self._bio_busy:
            return
        year = game_year(self.state.tick)
        candidates = bio_candidates(self.state.population, year, self.config.bio_batch_size)
        if not candidates:
            return
        self._bio_busy = True
        session = self.session
        summary = VillageSummary.of(self.state)
        rng = random.Random(self.rng.getrandbits(32))

        def job():
            for villager in candidates:
                bio = self.client.generate_bio(villager, year, summary, rng)
                self.submit(UpdateBio(villager.id, bio, year), session)
            if self.session == session:
                self._bio_busy = False

        self._run(job)

    def _request_ending(self):
        if self._ending_requested:
            return
        self._ending_requested = True
        session = self.session
        finished = self.state

        def job():
            self.submit(UpdateEndingSummary(self.client.generate_ending_summary(finished)), session)

        self._run(job)
