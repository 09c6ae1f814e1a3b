from __future__ import annotations

import logging
from dataclasses import dataclass

from village.agents.agent import Action, Character, Eat, Harvest, Item, ItemStack, Talk
from village.sim.queries import plants_in_range
from village.sim.settings import SimSettings
from village.sim.world import WorldStore

LOGGER = logging.getLogger("village.sim.actions")


@dataclass
class ActionResolver:
    """Applies every queued action once per tick, then clears the queues."""

    store: WorldStore
    settings: SimSettings

    def resolve(self) -> None:
        for character in self.store.characters.values():
            for action in character.pending_actions:
                self._apply(character, action)
            character.pending_actions.clear()

    def _apply(self, character: Character, action: Action) -> None:
        if isinstance(action, Eat):
            self._eat(character)
        elif isinstance(action, Harvest):
            self._harvest(character)
        elif isinstance(action, Talk):
            character.speech = action.text
        else:
            raise TypeError(f"unhandled action: {action!r}")

    def _eat(self, character: Character) -> None:
        for stack in character.inventory:
            nutrition = stack.kind.nutrition
            if nutrition <= 0 or stack.count <= 0:
                continue
            stack.count -= 1
            character.satiety = min(self.settings.satiety_max, character.satiety + nutrition)
            LOGGER.debug("%s ate %s satiety=%.2f", character.name, stack.kind.value, character.satiety)
            return

    def _harvest(self, character: Character) -> None:
        for plant in plants_in_range(self.store, character.pos):
            if not plant.is_grown:
                continue
            character.inventory.append(ItemStack(Item.PLANT, 1))
            plant.growth = 0.0
            LOGGER.debug("%s harvested plant id=%d", character.name, plant.id)
