from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from village.agents.agent import PendingDecision
from village.llm.schema import GenerationReply, GenerationRequest, SamplingParams
from village.sim.context import build_request
from village.sim.settings import SimSettings
from village.sim.world import WorldStore

LOGGER = logging.getLogger("village.sim.dispatcher")


class GenerationClient(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationReply: ...


@dataclass
class DecisionDispatcher:
    """Starts at most one generation request per agent once its cooldown elapses."""

    store: WorldStore
    client: GenerationClient
    settings: SimSettings
    sampling: SamplingParams = field(default_factory=SamplingParams)
    executor: Executor | None = None

    def __post_init__(self) -> None:
        if self.executor is None:
            # Shared pool: requests block on I/O here so the tick thread never does
            self.executor = ThreadPoolExecutor(
                max_workers=self.settings.max_concurrent_requests,
                thread_name_prefix="decision",
            )

    def dispatch(self, dt: float) -> list[int]:
        dispatched: list[int] = []
        for character, agent in self.store.agent_pairs():
            agent.cooldown -= dt
            if agent.cooldown > 0:
                continue
            if agent.pending is not None:
                agent.cooldown = 0.0
                continue

            history = agent.consult_history(self.settings.history_limit)
            request = build_request(
                self.store,
                character,
                agent,
                history,
                sight_radius=self.settings.sight_radius,
                sampling=self.sampling,
            )
            LOGGER.debug("Decision prompt agent=%s:\n%s", character.name, request.messages[-1].content)

            future = self.executor.submit(self.client.generate, request)
            agent.pending = PendingDecision(agent_id=agent.id, future=future)
            agent.cooldown = self.settings.decision_cooldown_sec
            dispatched.append(agent.id)
            LOGGER.info(
                "Dispatched decision agent=%s state=%s history=%d",
                character.name,
                agent.state.label,
                len(history),
            )
        return dispatched

    def in_flight(self) -> int:
        return sum(1 for agent in self.store.agents.values() if agent.pending is not None)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=False, cancel_futures=True)
