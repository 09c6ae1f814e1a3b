from __future__ import annotations

from typing import Any

from village.agents.agent import Action, Agent, Character
from village.llm.schema import ChatMessage, GenerationRequest, SamplingParams, ToolSpec
from village.sim.queries import regions_containing, visible_names
from village.sim.world import WorldStore

SET_TASK = "set_task"
TASK_VALUES = ("idle", "farming", "traveling")


def join_names(names: list[str]) -> str:
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return ", ".join(names[:-1]) + f", and {names[-1]}"


def system_prompt(name: str) -> str:
    return (
        f"You are {name}, a villager in a small farming village.\n"
        "Stay in character and keep it short.\n"
        f'To speak, answer with exactly one line that starts with "{name}: " followed by what you say.\n'
        f"To change what you are doing, call {SET_TASK} instead of speaking.\n"
        "Do not narrate actions or describe other characters' lines."
    )


def set_task_tool(region_names: list[str]) -> ToolSpec:
    destination: dict[str, Any] = {
        "type": "string",
        "description": "Region to travel to. Required when task is traveling.",
    }
    if region_names:
        destination["enum"] = list(region_names)
    return ToolSpec(
        name=SET_TASK,
        description="Change what you are currently doing.",
        parameters={
            "type": "object",
            "properties": {
                "task": {"type": "string", "enum": list(TASK_VALUES)},
                "destination": destination,
            },
            "required": ["task"],
        },
    )


def history_lines(history: list[tuple[str, Action]]) -> list[str]:
    return [action.narrate(actor) for actor, action in history]


def build_context(
    store: WorldStore,
    character: Character,
    agent: Agent,
    history: list[tuple[str, Action]],
    sight_radius: float,
) -> str:
    parts: list[str] = [agent.backstory.strip()]

    lines = history_lines(history)
    if lines:
        parts.append("\n".join(lines))

    seen = join_names(visible_names(store, character, sight_radius))
    if seen:
        parts.append(f"You see {seen}.")

    here = join_names([region.name for region in regions_containing(store, character.pos)])
    if here:
        parts.append(f"You are currently in {here}.")

    parts.append(agent.state.narrate())
    return "\n\n".join(part for part in parts if part)


def build_request(
    store: WorldStore,
    character: Character,
    agent: Agent,
    history: list[tuple[str, Action]],
    *,
    sight_radius: float,
    sampling: SamplingParams | None = None,
) -> GenerationRequest:
    return GenerationRequest(
        messages=[
            ChatMessage(role="system", content=system_prompt(character.name)),
            ChatMessage(
                role="user",
                content=build_context(store, character, agent, history, sight_radius),
            ),
        ],
        sampling=sampling or SamplingParams(),
        tools=[set_task_tool(list(store.regions.keys()))],
    )
