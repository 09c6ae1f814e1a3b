from __future__ import annotations

import logging
from concurrent.futures import CancelledError
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, ValidationError

from village.agents.agent import Agent, BehaviorState, Character, Farming, Idle, Talk, Traveling
from village.llm.errors import DecisionError, LogicError
from village.llm.schema import GenerationReply, ToolCall
from village.sim.context import SET_TASK
from village.sim.settings import SimSettings
from village.sim.world import WorldStore

LOGGER = logging.getLogger("village.sim.llm_decider")


class SetTaskArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    task: str
    destination: str | None = None


def speech_from_reply(name: str, content: str | None) -> str | None:
    """Return the spoken line when the reply is framed as ``"{name}: ..."``, else None."""
    if not content:
        return None
    prefix = f"{name}: "
    if not content.startswith(prefix):
        return None
    text = content[len(prefix):].strip()
    return text or None


def state_from_tool_call(call: ToolCall) -> BehaviorState:
    try:
        args = SetTaskArgs.model_validate_json(call.arguments or "")
    except ValidationError as exc:
        raise LogicError(f"malformed {SET_TASK} arguments: {call.arguments!r}") from exc

    task = args.task
    if task == "idle":
        return Idle()
    if task == "farming":
        return Farming()
    if task == "traveling":
        destination = (args.destination or "").strip()
        if not destination:
            raise LogicError(f"{SET_TASK} traveling without destination")
        return Traveling(destination)
    raise LogicError(f"unrecognized task {args.task!r}")


@dataclass
class ResponseIntegrator:
    """Applies finished generation requests on the tick thread."""

    store: WorldStore
    settings: SimSettings

    def integrate(self, dt: float) -> int:
        handled = 0
        for character, agent in self.store.agent_pairs():
            pending = agent.pending
            if pending is None:
                continue
            if not pending.future.done():
                pending.age += dt
                if pending.age >= self.settings.request_timeout_sec:
                    pending.future.cancel()
                    agent.pending = None
                    LOGGER.warning(
                        "Dropped stuck decision agent=%s age=%.1fs",
                        character.name,
                        pending.age,
                    )
                continue

            try:
                self._handle_finished(character, agent)
            finally:
                agent.pending = None
            handled += 1
        return handled

    def _handle_finished(self, character: Character, agent: Agent) -> None:
        future = agent.pending.future
        try:
            reply = future.result(timeout=0)
        except CancelledError:
            LOGGER.info("Decision cancelled agent=%s", character.name)
            return
        except DecisionError as exc:
            LOGGER.error("Decision failed agent=%s error=%s detail=%s", character.name, type(exc).__name__, exc)
            return
        except Exception:
            LOGGER.exception("Decision worker raised unexpectedly agent=%s", character.name)
            return

        if not isinstance(reply, GenerationReply):
            LOGGER.error("Decision returned unexpected value agent=%s type=%s", character.name, type(reply).__name__)
            return
        self.apply_reply(character, agent, reply)

    def apply_reply(self, character: Character, agent: Agent, reply: GenerationReply) -> None:
        text = speech_from_reply(character.name, reply.content)
        if text is not None:
            character.pending_actions.append(Talk(text))
            LOGGER.info("Agent %s speaks: %s", character.name, text)
        elif reply.content:
            LOGGER.debug("Discarded reply without speaker prefix agent=%s content=%r", character.name, reply.content[:200])

        for call in reply.tool_calls:
            if call.name != SET_TASK:
                LOGGER.warning("Ignored unknown tool call agent=%s name=%s", character.name, call.name)
                continue
            try:
                new_state = state_from_tool_call(call)
            except LogicError as exc:
                LOGGER.warning("Falling back to idle agent=%s reason=%s", character.name, exc)
                new_state = Idle()
            if new_state != agent.state:
                LOGGER.info("Agent %s state %s -> %s", character.name, agent.state, new_state)
            agent.state = new_state
