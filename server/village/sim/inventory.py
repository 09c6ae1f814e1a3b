from __future__ import annotations

import logging
from dataclasses import dataclass

from village.agents.agent import Eat, Item, ItemStack
from village.sim.settings import SimSettings
from village.sim.world import WorldStore

LOGGER = logging.getLogger("village.sim.inventory")


def consolidate_stacks(stacks: list[ItemStack]) -> list[ItemStack]:
    totals: dict[Item, int] = {}
    for stack in stacks:
        totals[stack.kind] = totals.get(stack.kind, 0) + stack.count
    return [ItemStack(kind, count) for kind, count in totals.items() if count > 0]


@dataclass
class InventorySaturationSubsystem:
    store: WorldStore
    settings: SimSettings

    def consolidate(self) -> None:
        for character in self.store.characters.values():
            character.inventory = consolidate_stacks(character.inventory)

    def decay(self, dt: float) -> list[int]:
        """Burn satiety; queue Eat when hungry and remove starved characters. Returns removed ids."""
        starved: list[int] = []
        for character in list(self.store.characters.values()):
            character.satiety -= self.settings.satiety_decay_per_sec * dt
            if character.satiety <= 0:
                LOGGER.warning("Character %s starved satiety=%.2f", character.name, character.satiety)
                self.store.remove_character(character.id)
                starved.append(character.id)
                continue
            if character.satiety < self.settings.low_satiety and character.has_edible():
                character.pending_actions.append(Eat())
        return starved
