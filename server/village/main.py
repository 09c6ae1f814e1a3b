from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import time
from pathlib import Path

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from village.api.models import ControlMoveIn, ControlSayIn
from village.llm.errors import MissingCredentialError
from village.sim.engine import Simulation

LOGGER = logging.getLogger("village.main")


def _load_env_from_repo_root() -> None:
    # server/village/main.py -> repo root is 2 levels up from "server"
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = value.strip()
        if value and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


_load_env_from_repo_root()


class WsHub:
    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def add(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.add(ws)

    async def remove(self, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(ws)

    async def send(self, ws: WebSocket, message: dict) -> None:
        await ws.send_text(json.dumps(message, ensure_ascii=False))

    async def broadcast(self, message: dict) -> None:
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return

        serialized = json.dumps(message, ensure_ascii=False)
        stale: list[WebSocket] = []
        for ws in clients:
            try:
                await ws.send_text(serialized)
            except (RuntimeError, WebSocketDisconnect):
                stale.append(ws)
        if stale:
            async with self._lock:
                for ws in stale:
                    self._clients.discard(ws)


try:
    world = Simulation.from_env()
except MissingCredentialError as exc:
    LOGGER.critical("Cannot start: %s", exc)
    raise SystemExit(1) from exc

app = FastAPI(title="NPC Village Server", version="0.1.0")
hub = WsHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def tick_loop() -> None:
    interval = world.settings.tick_interval_sec
    last = time.perf_counter()
    while True:
        await asyncio.sleep(interval)

        started_at = time.perf_counter()
        result = world.step(started_at - last)
        last = started_at
        if result.starved:
            LOGGER.info("Tick %d removed starved characters=%s", result.tick, result.starved)
        await hub.broadcast({"type": "state", "payload": world.render_payload()})

        tick_ms = (time.perf_counter() - started_at) * 1000.0
        avg = getattr(app.state, "avg_tick_ms", 0.0)
        if avg <= 0.0:
            app.state.avg_tick_ms = tick_ms
        else:
            app.state.avg_tick_ms = (avg * 0.88) + (tick_ms * 0.12)
        app.state.last_tick_ms = tick_ms


@app.on_event("startup")
async def startup() -> None:
    app.state.last_tick_ms = 0.0
    app.state.avg_tick_ms = 0.0
    app.state.tick_task = asyncio.create_task(tick_loop())


@app.on_event("shutdown")
async def shutdown() -> None:
    task = getattr(app.state, "tick_task", None)
    if task:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    world.close()


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/api/state")
async def state() -> dict:
    payload = world.render_payload()
    payload["runtime"] = {
        "last_tick_ms": round(float(getattr(app.state, "last_tick_ms", 0.0)), 3),
        "avg_tick_ms": round(float(getattr(app.state, "avg_tick_ms", 0.0)), 3),
        "decisions_in_flight": world.dispatcher.in_flight(),
    }
    return payload


@app.get("/api/camera")
async def camera() -> dict:
    pos = world.camera_payload()
    if pos is None:
        raise HTTPException(status_code=404, detail="player not in world")
    return {"pos": pos}


@app.post("/api/control/move")
async def control_move(payload: ControlMoveIn) -> dict:
    world.set_move_direction(payload.x, payload.y)
    return {"accepted": True}


@app.post("/api/control/harvest")
async def control_harvest() -> dict:
    world.trigger_harvest()
    return {"accepted": True}


@app.post("/api/control/say")
async def control_say(payload: ControlSayIn) -> dict:
    if not payload.text.strip():
        raise HTTPException(status_code=400, detail="empty text")
    world.submit_speech(payload.text)
    return {"accepted": True}


@app.websocket("/ws/stream")
async def ws_stream(ws: WebSocket) -> None:
    await hub.add(ws)
    try:
        await hub.send(ws, {"type": "state", "payload": world.render_payload()})
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.remove(ws)
