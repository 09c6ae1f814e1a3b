from __future__ import annotations

import logging
from dataclasses import dataclass

from village.agents.agent import Agent, Character, Farming, Harvest, Idle, Traveling
from village.sim.movement import distance_2d, step_towards
from village.sim.queries import farming_candidates, nearest_plant
from village.sim.world import WorldStore

LOGGER = logging.getLogger("village.sim.behavior")


@dataclass
class BehaviorStateMachine:
    store: WorldStore

    def update(self, dt: float) -> None:
        for character, agent in self.store.agent_pairs():
            state = agent.state
            if isinstance(state, Idle):
                continue
            if isinstance(state, Farming):
                self._farm(character, agent, dt)
            elif isinstance(state, Traveling):
                self._travel(character, agent, state, dt)

    def _farm(self, character: Character, agent: Agent, dt: float) -> None:
        target = nearest_plant(
            farming_candidates(self.store, character, agent.property_region),
            character.pos,
        )
        if target is None:
            return
        if distance_2d(character.pos, target.pos) <= target.harvest_range:
            character.pending_actions.append(Harvest())
            return
        character.pos = step_towards(character.pos, target.pos, character.speed, dt)

    def _travel(self, character: Character, agent: Agent, state: Traveling, dt: float) -> None:
        region = self.store.regions.get(state.destination)
        if region is None:
            LOGGER.warning("Unknown destination agent=%s destination=%r, going idle", character.name, state.destination)
            agent.state = Idle()
            return
        if region.contains(character.pos):
            LOGGER.info("Agent %s arrived at %s", character.name, region.name)
            agent.state = Idle()
            return
        character.pos = step_towards(character.pos, region.centroid, character.speed, dt)
        if region.contains(character.pos):
            LOGGER.info("Agent %s arrived at %s", character.name, region.name)
            agent.state = Idle()
