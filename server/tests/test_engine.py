"""End-to-end tick tests for the Simulation pipeline."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from village.agents.agent import Farming, Harvest, Idle, Item, Talk, Traveling, Vec2
from village.llm.schema import GenerationReply, ToolCall
from village.sim.engine import Simulation, build_default_world


def _sim(store, client, settings, executor) -> Simulation:
    return Simulation(client=client, settings=settings, store=store, executor=executor)


def test_reply_spoken_within_the_same_tick_it_arrives(store, make_client, settings, immediate_executor):
    character, agent = store.add_agent("Theo", Vec2(0.0, 0.0), "You are Theo.", cooldown=0.0)
    client = make_client(GenerationReply(content="Theo: Good morning"))
    sim = _sim(store, client, settings, immediate_executor)

    result = sim.step(1.0)

    assert result.dispatched == [agent.id]
    assert result.integrated == 1
    assert character.speech == "Good morning"
    assert agent.pending is None
    assert agent.cooldown == settings.decision_cooldown_sec
    assert ("Theo", Talk("Good morning")) in agent.history


def test_history_captures_neighbours_before_resolution(store, fake_client, settings, held_executor):
    _, listener = store.add_agent("Theo", Vec2(0.0, 0.0), "b", cooldown=100.0)
    talker = store.add_character("Alice", Vec2(10.0, 0.0))
    stranger = store.add_character("Zed", Vec2(5000.0, 0.0))
    talker.pending_actions.append(Talk("Lovely weather"))
    stranger.pending_actions.append(Talk("Nobody hears me"))
    sim = _sim(store, fake_client, settings, held_executor)

    sim.step(1.0)

    assert listener.history == [("Alice", Talk("Lovely weather"))]
    assert talker.pending_actions == []
    assert talker.speech == "Lovely weather"


def test_history_feeds_the_next_prompt(store, fake_client, settings, immediate_executor):
    store.add_agent("Theo", Vec2(0.0, 0.0), "You are Theo.", cooldown=2.5)
    talker = store.add_character("Alice", Vec2(10.0, 0.0))
    talker.pending_actions.append(Talk("Have you seen my cow?"))
    sim = _sim(store, fake_client, settings, immediate_executor)

    for _ in range(3):
        sim.step(1.0)

    prompt = fake_client.requests[0].messages[1].content
    assert 'Alice says "Have you seen my cow?".' in prompt
    assert "You see Alice." in prompt


def test_tool_call_then_travel_then_idle(store, make_client, settings, immediate_executor):
    character, agent = store.add_agent(
        "Theo", Vec2(550.0, 350.0), "b", cooldown=0.0, state=Farming(), speed=100.0
    )
    call = ToolCall(name="set_task", arguments='{"task": "traveling", "destination": "Town Square"}')
    sim = _sim(store, make_client(GenerationReply(tool_calls=[call])), settings, immediate_executor)

    sim.step(1.0)
    assert agent.state == Traveling("Town Square")
    assert character.pos.to_dict() == {"x": 550.0, "y": 450.0}

    sim.step(1.0)
    assert agent.state == Idle()


def test_player_input_reaches_queue_and_neighbours(store, fake_client, settings, held_executor):
    player = store.add_player("Player", Vec2(0.0, 0.0), speed=10.0)
    _, agent = store.add_agent("Theo", Vec2(20.0, 0.0), "b", cooldown=100.0)
    plant = store.add_plant(Vec2(10.0, 0.0), growth=1.0)
    sim = _sim(store, fake_client, settings, held_executor)

    sim.set_move_direction(1.0, 0.0)
    sim.trigger_harvest()
    sim.submit_speech("  Hi Theo  ")
    sim.submit_speech("   ")
    sim.step(1.0)

    assert player.pos.x == pytest.approx(10.0)
    assert player.speech == "Hi Theo"
    assert player.item_count(Item.PLANT) == 1
    assert plant.growth == 0.0
    assert agent.history == [("Player", Harvest()), ("Player", Talk("Hi Theo"))]

    sim.set_move_direction(0.0, 0.0)
    sim.step(1.0)
    assert player.pos.x == pytest.approx(10.0)
    assert player.pending_actions == []


def test_starved_character_leaves_world_next_tick(store, fake_client, settings, held_executor):
    character = store.add_character("Theo", Vec2(0.0, 0.0), satiety=1.5)
    sim = _sim(store, fake_client, settings, held_executor)

    assert sim.step(1.0).starved == []
    assert character.satiety == pytest.approx(0.5)

    result = sim.step(1.0)
    assert result.starved == [character.id]
    assert store.character(character.id) is None


def test_growth_runs_before_resolution(store, fake_client, settings, held_executor):
    plant = store.add_plant(Vec2(10.0, 0.0), growth=0.95)
    character = store.add_character("Theo", Vec2(0.0, 0.0))
    sim = _sim(store, fake_client, settings, held_executor)

    character.pending_actions.append(Harvest())
    sim.step(1.0)

    assert plant.growth == 0.0
    assert character.item_count(Item.PLANT) == 1


def test_render_and_camera_payloads(settings, fake_client, held_executor):
    sim = Simulation(client=fake_client, settings=settings, executor=held_executor)

    payload = sim.render_payload()
    names = {item["name"] for item in payload["characters"]}
    assert names == {"Player", "Bill", "Bob"}
    bill = next(item for item in payload["characters"] if item["name"] == "Bill")
    assert bill["behavior"] == "farming"
    assert bill["property"] == "Bill's Farm"
    assert all(plant["stage"] in (0, 1, 2, 3) for plant in payload["plants"])
    assert sim.camera_payload() == {"x": 0.0, "y": 250.0}

    sim.store.remove_character(sim.store.player_id)
    assert sim.camera_payload() is None


def test_default_world_is_consistent(settings):
    world = build_default_world(settings)
    assert world.player() is not None
    for agent in world.agents.values():
        assert agent.property_region in world.regions


def test_from_env_sends_configured_temperature(monkeypatch, immediate_executor):
    monkeypatch.setenv("LLM_TEMPERATURE", "0.1")
    monkeypatch.setenv("LLM_MAX_OUTPUT_TOKENS", "64")
    sim = Simulation.from_env()
    calls: list[dict] = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(model_dump=lambda: {"choices": [{"message": {"content": "..."}}]})

    sim.dispatcher.client._sdk_client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create))
    )
    sim.dispatcher.executor = immediate_executor

    sim.step(sim.settings.decision_cooldown_sec)
    sim.close()

    assert calls
    assert all(sent["temperature"] == pytest.approx(0.1) for sent in calls)
    assert all(sent["max_tokens"] == 64 for sent in calls)
