from __future__ import annotations

from dataclasses import dataclass

from village.sim.queries import characters_near
from village.sim.settings import SimSettings
from village.sim.world import WorldStore


@dataclass
class HistoryAggregator:
    store: WorldStore
    settings: SimSettings

    def aggregate(self) -> None:
        # Runs before ActionResolver clears the queues.
        for character, agent in self.store.agent_pairs():
            for nearby in characters_near(self.store, character.pos, self.settings.history_radius):
                for action in nearby.pending_actions:
                    agent.history.append((nearby.name, action))
