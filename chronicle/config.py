"""
Village Chronicle - Configuration
Host and collaborator parameters in one place.
"""

import os
from dataclasses import dataclass


@dataclass
class DriverConfig:
    """Cadences and endpoints used by the game driver."""

    # Time
    tick_interval_ms: int = 1000
    render_fps: int = 30

    # Persistence
    save_path: str = "village_save.json"
    save_interval_ticks: int = 20
    max_saved_log_entries: int = 500
    max_saved_history_points: int = 260
    max_save_bytes: int = 5 * 1024 * 1024

    # Narrative service
    api_url: str = "http://localhost:3001"
    api_timeout: float = 10.0
    initial_event_batch: int = 8
    replenish_event_batch: int = 5
    replenish_interval_ticks: int = 10
    bio_batch_size: int = 5

    @classmethod
    def from_env(cls) -> "DriverConfig":
        config = cls()
        config.api_url = os.environ.get("VILLAGE_API_URL", config.api_url)
        config.save_path = os.environ.get("VILLAGE_SAVE_PATH", config.save_path)
        return config


CONFIG = DriverConfig.from_env()
