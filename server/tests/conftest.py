"""
Shared fixtures for simulation tests.
Generation requests never leave the process: clients are fakes and executors
either run the call inline or hold the future open.
"""
from __future__ import annotations

import os
from concurrent.futures import Executor, Future

import pytest

from village.llm.schema import GenerationReply, GenerationRequest
from village.sim.settings import SimSettings
from village.sim.world import Region, WorldStore


@pytest.fixture(scope="session", autouse=True)
def _isolate_env():
    """Credential for the app import; the SDK client is created lazily so nothing is sent."""
    os.environ["LLM_API_KEY"] = "test-key"
    os.environ["LLM_BASE_URL"] = "http://127.0.0.1:9/v1"
    yield


class FakeClient:
    def __init__(self, reply: GenerationReply | None = None, error: Exception | None = None) -> None:
        self.reply = reply or GenerationReply()
        self.error = error
        self.requests: list[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> GenerationReply:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


class ImmediateExecutor(Executor):
    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class HeldExecutor(Executor):
    """Never runs anything; tests resolve the futures by hand."""

    def __init__(self) -> None:
        self.futures: list[Future] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.futures.append(future)
        return future


@pytest.fixture
def settings() -> SimSettings:
    return SimSettings(
        decision_cooldown_sec=10.0,
        npc_speed=100.0,
        player_speed=500.0,
        sight_radius=300.0,
        history_radius=300.0,
        history_limit=40,
        growth_per_tick=0.1,
        satiety_max=100.0,
        satiety_decay_per_sec=1.0,
        low_satiety=50.0,
        max_concurrent_requests=2,
        request_timeout_sec=5.0,
        tick_interval_sec=1.0,
    )


@pytest.fixture
def store() -> WorldStore:
    world = WorldStore()
    world.add_region(Region("Bill's Farm", 0.0, 0.0, 100.0, 100.0))
    world.add_region(Region("Town Square", 500.0, 500.0, 600.0, 600.0))
    return world


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def immediate_executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def held_executor() -> HeldExecutor:
    return HeldExecutor()

