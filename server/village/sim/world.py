from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from village.agents.agent import Agent, BehaviorState, Character, Idle, Vec2

LOGGER = logging.getLogger("village.sim.world")

GROWTH_THRESHOLDS: tuple[float, float, float] = (1.0 / 3.0, 2.0 / 3.0, 1.0)
HARVEST_RANGE_BY_STAGE: tuple[float, float, float, float] = (10.0, 20.0, 30.0, 40.0)


@dataclass(frozen=True)
class Region:
    name: str
    left: float
    bottom: float
    right: float
    top: float

    def contains(self, pos: Vec2) -> bool:
        return self.left <= pos.x <= self.right and self.bottom <= pos.y <= self.top

    @property
    def centroid(self) -> Vec2:
        return Vec2((self.left + self.right) / 2.0, (self.bottom + self.top) / 2.0)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "left": self.left,
            "bottom": self.bottom,
            "right": self.right,
            "top": self.top,
        }


@dataclass
class Plant:
    id: int
    pos: Vec2
    growth: float = 0.0

    @property
    def stage(self) -> int:
        stage = 0
        for threshold in GROWTH_THRESHOLDS:
            if self.growth >= threshold:
                stage += 1
        return stage

    @property
    def harvest_range(self) -> float:
        return HARVEST_RANGE_BY_STAGE[self.stage]

    @property
    def is_grown(self) -> bool:
        return self.growth >= 1.0

    def grow(self, increment: float) -> None:
        self.growth = max(0.0, min(1.0, self.growth + increment))

    def to_state_payload(self) -> dict:
        return {
            "id": self.id,
            "pos": self.pos.to_dict(),
            "growth": round(self.growth, 3),
            "stage": self.stage,
        }


@dataclass
class WorldStore:
    """Owns every entity. Components address entities by id only.

    Dicts preserve insertion order, which is the stable iteration order every
    query and system relies on.
    """

    characters: dict[int, Character] = field(default_factory=dict)
    agents: dict[int, Agent] = field(default_factory=dict)
    plants: dict[int, Plant] = field(default_factory=dict)
    regions: dict[str, Region] = field(default_factory=dict)
    player_id: int | None = None
    next_entity_id: int = 1

    def _allocate_id(self) -> int:
        entity_id = self.next_entity_id
        self.next_entity_id += 1
        return entity_id

    def add_character(
        self,
        name: str,
        pos: Vec2,
        *,
        satiety: float = 100.0,
        speed: float = 100.0,
    ) -> Character:
        if any(existing.name == name for existing in self.characters.values()):
            raise ValueError(f"character name already used: {name}")
        character = Character(id=self._allocate_id(), name=name, pos=pos, satiety=satiety, speed=speed)
        self.characters[character.id] = character
        return character

    def add_player(self, name: str, pos: Vec2, *, satiety: float = 100.0, speed: float = 500.0) -> Character:
        character = self.add_character(name, pos, satiety=satiety, speed=speed)
        self.player_id = character.id
        return character

    def add_agent(
        self,
        name: str,
        pos: Vec2,
        backstory: str,
        *,
        cooldown: float,
        state: BehaviorState | None = None,
        property_region: str | None = None,
        satiety: float = 100.0,
        speed: float = 100.0,
    ) -> tuple[Character, Agent]:
        if property_region is not None and property_region not in self.regions:
            raise ValueError(f"unknown property region: {property_region}")
        character = self.add_character(name, pos, satiety=satiety, speed=speed)
        agent = Agent(
            id=character.id,
            backstory=backstory,
            cooldown=cooldown,
            state=state if state is not None else Idle(),
            property_region=property_region,
        )
        self.agents[character.id] = agent
        return character, agent

    def add_plant(self, pos: Vec2, growth: float = 0.0) -> Plant:
        plant = Plant(id=self._allocate_id(), pos=pos, growth=max(0.0, min(1.0, growth)))
        self.plants[plant.id] = plant
        return plant

    def add_region(self, region: Region) -> Region:
        if region.name in self.regions:
            raise ValueError(f"region name already used: {region.name}")
        self.regions[region.name] = region
        return region

    def remove_character(self, entity_id: int) -> Character | None:
        character = self.characters.pop(entity_id, None)
        agent = self.agents.pop(entity_id, None)
        if agent is not None and agent.pending is not None:
            agent.pending.future.cancel()
            agent.pending = None
        if self.player_id == entity_id:
            self.player_id = None
        if character is not None:
            LOGGER.info("Removed character id=%d name=%s", entity_id, character.name)
        return character

    def character(self, entity_id: int) -> Character | None:
        return self.characters.get(entity_id)

    def agent(self, entity_id: int) -> Agent | None:
        return self.agents.get(entity_id)

    def player(self) -> Character | None:
        if self.player_id is None:
            return None
        return self.characters.get(self.player_id)

    def agent_pairs(self) -> Iterator[tuple[Character, Agent]]:
        for agent_id, agent in list(self.agents.items()):
            character = self.characters.get(agent_id)
            if character is not None:
                yield character, agent


def grow_plants(store: WorldStore, increment: float) -> None:
    for plant in store.plants.values():
        plant.grow(increment)
