from __future__ import annotations

import math
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass
class Vec2:
    x: float
    y: float = 0.0

    def to_dict(self) -> dict:
        return {"x": round(self.x, 2), "y": round(self.y, 2)}

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y)

    def normalized(self) -> "Vec2":
        length = self.length()
        if length < 1e-6:
            return Vec2(0.0, 0.0)
        return Vec2(self.x / length, self.y / length)


class Item(str, Enum):
    PLANT = "plant"
    MEAT = "meat"

    @property
    def nutrition(self) -> float:
        return _NUTRITION[self]


_NUTRITION: dict[Item, float] = {
    Item.PLANT: 10.0,
    Item.MEAT: 25.0,
}


@dataclass
class ItemStack:
    kind: Item
    count: int = 1


@dataclass(frozen=True)
class Eat:
    def narrate(self, actor: str) -> str:
        return f"{actor} eats something."


@dataclass(frozen=True)
class Harvest:
    def narrate(self, actor: str) -> str:
        return f"{actor} harvests."


@dataclass(frozen=True)
class Talk:
    text: str

    def narrate(self, actor: str) -> str:
        return f'{actor} says "{self.text}".'


Action = Union[Eat, Harvest, Talk]


@dataclass(frozen=True)
class Idle:
    def narrate(self) -> str:
        return "You are idle."

    @property
    def label(self) -> str:
        return "idle"


@dataclass(frozen=True)
class Farming:
    def narrate(self) -> str:
        return "You are farming."

    @property
    def label(self) -> str:
        return "farming"


@dataclass(frozen=True)
class Traveling:
    destination: str

    def narrate(self) -> str:
        return f"You are traveling to {self.destination}."

    @property
    def label(self) -> str:
        return "traveling"


BehaviorState = Union[Idle, Farming, Traveling]


@dataclass
class Character:
    id: int
    name: str
    pos: Vec2
    satiety: float = 100.0
    speed: float = 100.0
    inventory: list[ItemStack] = field(default_factory=list)
    pending_actions: list[Action] = field(default_factory=list)
    speech: str | None = None

    def has_edible(self) -> bool:
        return any(stack.kind.nutrition > 0 and stack.count > 0 for stack in self.inventory)

    def item_count(self, kind: Item) -> int:
        return sum(stack.count for stack in self.inventory if stack.kind == kind)

    def to_state_payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pos": self.pos.to_dict(),
            "satiety": round(self.satiety, 2),
            "speech": self.speech or "",
            "inventory": {kind.value: self.item_count(kind) for kind in Item if self.item_count(kind) > 0},
        }


@dataclass
class PendingDecision:
    """One in-flight generation request for one agent."""

    agent_id: int
    future: Future
    age: float = 0.0


@dataclass
class Agent:
    id: int
    backstory: str
    cooldown: float
    state: BehaviorState = field(default_factory=Idle)
    property_region: str | None = None
    history: list[tuple[str, Action]] = field(default_factory=list)
    pending: PendingDecision | None = None

    def consult_history(self, limit: int) -> list[tuple[str, Action]]:
        """Deduplicate history by value in place and return the most recent ``limit`` entries."""
        seen: set[tuple[str, Action]] = set()
        deduped: list[tuple[str, Action]] = []
        for entry in self.history:
            if entry in seen:
                continue
            seen.add(entry)
            deduped.append(entry)
        if limit > 0:
            deduped = deduped[-limit:]
        self.history = deduped
        return list(deduped)

    def to_state_payload(self) -> dict:
        payload = {
            "behavior": self.state.label,
            "cooldown": round(max(0.0, self.cooldown), 2),
            "deciding": self.pending is not None,
        }
        if isinstance(self.state, Traveling):
            payload["destination"] = self.state.destination
        if self.property_region:
            payload["property"] = self.property_region
        return payload
