"""JSON snapshot storage for a single saved game."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from chronicle.state import WorldState

logger = logging.getLogger(__name__)

SAVE_VERSION = 1


@dataclass
class SnapshotStore:
    """One JSON file holding the latest snapshot."""

    path: str | os.PathLike[str]
    max_log_entries: int = 500
    max_history_points: int = 260
    max_bytes: int = 5 * 1024 * 1024

    def save(self, state: WorldState) -> bool:
        trimmed = replace(
            state,
            log=state.log[-self.max_log_entries:],
            history=state.history[-self.max_history_points:],
        )
        data = trimmed.to_dict()
        data["_meta"] = {"version": SAVE_VERSION}
        text = json.dumps(data)
        if len(text.encode("utf-8")) > self.max_bytes:
            logger.warning("Snapshot is %d bytes, over the %d byte limit; not saved", len(text), self.max_bytes)
            return False
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.warning("Could not save the game to %s: %s", self.path, e)
            return False
        logger.info("Saved tick %d to %s", state.tick, self.path)
        return True

    def load(self) -> Optional[WorldState]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            data.pop("_meta", None)
            return WorldState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable save %s: %s", self.path, e)
            return None

    def clear(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not delete save %s: %s", self.path, e)
