from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field

from village.agents.agent import Farming, Harvest, Idle, Talk, Vec2
from village.llm.client import LLMClient
from village.llm.schema import SamplingParams
from village.sim.actions import ActionResolver
from village.sim.behavior import BehaviorStateMachine
from village.sim.dispatcher import DecisionDispatcher, GenerationClient
from village.sim.history import HistoryAggregator
from village.sim.inventory import InventorySaturationSubsystem
from village.sim.llm_decider import ResponseIntegrator
from village.sim.movement import step_in_direction
from village.sim.settings import SimSettings
from village.sim.world import Region, WorldStore, grow_plants

LOGGER = logging.getLogger("village.sim.engine")


@dataclass
class PlayerInput:
    direction: Vec2 = field(default_factory=lambda: Vec2(0.0, 0.0))
    harvest_requested: bool = False
    submitted_speech: list[str] = field(default_factory=list)


@dataclass
class TickResult:
    tick: int
    dispatched: list[int] = field(default_factory=list)
    integrated: int = 0
    starved: list[int] = field(default_factory=list)


class Simulation:
    """Owns the world and runs the per-tick pipeline in its fixed order."""

    def __init__(
        self,
        client: GenerationClient,
        settings: SimSettings | None = None,
        store: WorldStore | None = None,
        executor: Executor | None = None,
        sampling: SamplingParams | None = None,
    ) -> None:
        self.settings = settings or SimSettings()
        self.store = store if store is not None else build_default_world(self.settings)
        self.tick = 0
        self.elapsed = 0.0
        self.player_input = PlayerInput()

        self.dispatcher = DecisionDispatcher(
            self.store,
            client,
            self.settings,
            sampling=sampling or SamplingParams(),
            executor=executor,
        )
        self.integrator = ResponseIntegrator(self.store, self.settings)
        self.behavior = BehaviorStateMachine(self.store)
        self.inventory = InventorySaturationSubsystem(self.store, self.settings)
        self.history = HistoryAggregator(self.store, self.settings)
        self.resolver = ActionResolver(self.store, self.settings)

    @classmethod
    def from_env(cls) -> "Simulation":
        # Raises MissingCredentialError when no API key is configured.
        client = LLMClient.from_env()
        sampling = SamplingParams(temperature=client.temperature, max_tokens=client.max_output_tokens)
        return cls(client=client, settings=SimSettings.from_env(), sampling=sampling)

    # Input collaborator

    def set_move_direction(self, x: float, y: float) -> None:
        self.player_input.direction = Vec2(float(x), float(y))

    def trigger_harvest(self) -> None:
        self.player_input.harvest_requested = True

    def submit_speech(self, text: str) -> None:
        text = text.strip()
        if text:
            self.player_input.submitted_speech.append(text)

    def _apply_input(self, dt: float) -> None:
        pending = self.player_input
        player = self.store.player()
        harvest_requested = pending.harvest_requested
        speech = list(pending.submitted_speech)
        pending.harvest_requested = False
        pending.submitted_speech.clear()
        if player is None:
            return

        if pending.direction.length() > 0:
            player.pos = step_in_direction(player.pos, pending.direction, player.speed, dt)
        if harvest_requested:
            player.pending_actions.append(Harvest())
        for text in speech:
            player.pending_actions.append(Talk(text))

    # Tick

    def step(self, dt: float | None = None) -> TickResult:
        dt = self.settings.tick_interval_sec if dt is None else max(0.0, float(dt))
        self.tick += 1
        self.elapsed += dt
        result = TickResult(tick=self.tick)

        self._apply_input(dt)
        result.dispatched = self.dispatcher.dispatch(dt)
        result.integrated = self.integrator.integrate(dt)
        self.behavior.update(dt)
        grow_plants(self.store, self.settings.growth_per_tick)
        self.inventory.consolidate()
        result.starved = self.inventory.decay(dt)
        self.history.aggregate()
        self.resolver.resolve()
        return result

    def close(self) -> None:
        self.dispatcher.shutdown()

    # Rendering / camera collaborators

    def render_payload(self) -> dict:
        characters: list[dict] = []
        for character in self.store.characters.values():
            item = character.to_state_payload()
            item["is_player"] = character.id == self.store.player_id
            agent = self.store.agent(character.id)
            if agent is not None:
                item.update(agent.to_state_payload())
            characters.append(item)
        return {
            "tick": self.tick,
            "elapsed": round(self.elapsed, 3),
            "characters": characters,
            "plants": [plant.to_state_payload() for plant in self.store.plants.values()],
            "regions": [region.to_dict() for region in self.store.regions.values()],
        }

    def camera_payload(self) -> dict | None:
        player = self.store.player()
        if player is None:
            return None
        return player.pos.to_dict()


def build_default_world(settings: SimSettings) -> WorldStore:
    store = WorldStore()
    store.add_region(Region("Bill's Farm", -600.0, -300.0, -200.0, 100.0))
    store.add_region(Region("Bob's Farm", 200.0, -300.0, 600.0, 100.0))
    store.add_region(Region("Town Square", -150.0, 150.0, 150.0, 400.0))

    for row in range(3):
        for col in range(4):
            store.add_plant(Vec2(-550.0 + col * 100.0, -250.0 + row * 120.0), growth=0.25 * col)
            store.add_plant(Vec2(250.0 + col * 100.0, -250.0 + row * 120.0), growth=0.25 * (3 - col))

    store.add_player("Player", Vec2(0.0, 250.0), satiety=settings.satiety_max, speed=settings.player_speed)
    store.add_agent(
        "Bill",
        Vec2(-400.0, -100.0),
        "You are Bill, a patient farmer who has worked the same field for thirty years. "
        "You distrust city folk but love a good conversation about the weather.",
        cooldown=settings.decision_cooldown_sec,
        state=Farming(),
        property_region="Bill's Farm",
        satiety=settings.satiety_max,
        speed=settings.npc_speed,
    )
    store.add_agent(
        "Bob",
        Vec2(400.0, -100.0),
        "You are Bob, Bill's younger neighbour. You are restless, talkative, "
        "and always looking for an excuse to visit the town square.",
        cooldown=settings.decision_cooldown_sec / 2.0,
        state=Idle(),
        property_region="Bob's Farm",
        satiety=settings.satiety_max,
        speed=settings.npc_speed,
    )
    LOGGER.info(
        "Built default world characters=%d plants=%d regions=%d",
        len(store.characters),
        len(store.plants),
        len(store.regions),
    )
    return store
