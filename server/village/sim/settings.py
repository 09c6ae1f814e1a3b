from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int, low: int, high: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        value = default
    return max(low, min(high, value))


def _env_float(name: str, default: float, low: float, high: float) -> float:
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        value = default
    return max(low, min(high, value))


@dataclass(frozen=True)
class SimSettings:
    """Tunables for the tick pipeline. Distances are world units, times are seconds."""

    decision_cooldown_sec: float = 10.0
    """Cooldown re-armed on every dispatch."""
    npc_speed: float = 100.0
    player_speed: float = 500.0
    sight_radius: float = 300.0
    """Characters within this radius are named in an agent's context."""
    history_radius: float = 300.0
    """Actions queued within this radius land in an agent's history."""
    history_limit: int = 40
    growth_per_tick: float = 0.002
    satiety_max: float = 100.0
    satiety_decay_per_sec: float = 1.0
    low_satiety: float = 50.0
    """Below this an Eat is queued whenever food is held."""
    max_concurrent_requests: int = 4
    """Worker pool size for generation requests."""
    request_timeout_sec: float = 60.0
    """Simulated seconds after which a stuck request is dropped."""
    tick_interval_sec: float = 1.0 / 64.0

    @classmethod
    def from_env(cls) -> "SimSettings":
        return cls(
            decision_cooldown_sec=_env_float("DECISION_COOLDOWN_SEC", 10.0, 0.5, 600.0),
            npc_speed=_env_float("NPC_SPEED", 100.0, 1.0, 5000.0),
            player_speed=_env_float("PLAYER_SPEED", 500.0, 1.0, 5000.0),
            sight_radius=_env_float("SIGHT_RADIUS", 300.0, 1.0, 10000.0),
            history_radius=_env_float("HISTORY_RADIUS", 300.0, 1.0, 10000.0),
            history_limit=_env_int("HISTORY_LIMIT", 40, 1, 500),
            growth_per_tick=_env_float("GROWTH_PER_TICK", 0.002, 0.0, 1.0),
            satiety_max=_env_float("SATIETY_MAX", 100.0, 1.0, 10000.0),
            satiety_decay_per_sec=_env_float("SATIETY_DECAY_PER_SEC", 1.0, 0.0, 100.0),
            low_satiety=_env_float("LOW_SATIETY", 50.0, 0.0, 10000.0),
            max_concurrent_requests=_env_int("MAX_CONCURRENT_REQUESTS", 4, 1, 32),
            request_timeout_sec=_env_float("REQUEST_TIMEOUT_SEC", 60.0, 1.0, 3600.0),
            tick_interval_sec=_env_float("TICK_INTERVAL_SEC", 1.0 / 64.0, 0.001, 5.0),
        )
