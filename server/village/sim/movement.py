from __future__ import annotations

import math

from village.agents.agent import Vec2


def distance_2d(a: Vec2, b: Vec2) -> float:
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2)


def step_towards(current: Vec2, target: Vec2, speed: float, dt: float) -> Vec2:
    dx = target.x - current.x
    dy = target.y - current.y
    distance = math.sqrt(dx * dx + dy * dy)
    if distance < 1e-6:
        return Vec2(current.x, current.y)

    max_step = max(0.0, speed * dt)
    ratio = min(1.0, max_step / distance)
    return Vec2(current.x + dx * ratio, current.y + dy * ratio)


def step_in_direction(current: Vec2, direction: Vec2, speed: float, dt: float) -> Vec2:
    unit = direction.normalized()
    return Vec2(current.x + unit.x * speed * dt, current.y + unit.y * speed * dt)
