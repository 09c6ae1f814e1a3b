from __future__ import annotations

from village.agents.agent import Character, Vec2
from village.sim.movement import distance_2d
from village.sim.world import Plant, Region, WorldStore


def regions_containing(store: WorldStore, pos: Vec2) -> list[Region]:
    return [region for region in store.regions.values() if region.contains(pos)]


def characters_near(store: WorldStore, pos: Vec2, radius: float) -> list[Character]:
    return [
        character
        for character in store.characters.values()
        if distance_2d(character.pos, pos) <= radius
    ]


def visible_names(store: WorldStore, viewer: Character, radius: float) -> list[str]:
    return [
        character.name
        for character in characters_near(store, viewer.pos, radius)
        if character.id != viewer.id
    ]


def plants_in_range(store: WorldStore, pos: Vec2) -> list[Plant]:
    """Plants whose current harvest range reaches ``pos``."""
    return [plant for plant in store.plants.values() if distance_2d(plant.pos, pos) <= plant.harvest_range]


def farming_candidates(store: WorldStore, character: Character, property_region: str | None) -> list[Plant]:
    grown = [plant for plant in store.plants.values() if plant.is_grown]
    if property_region is not None:
        region = store.regions.get(property_region)
        if region is None:
            return []
        return [plant for plant in grown if region.contains(plant.pos)]

    shared = regions_containing(store, character.pos)
    return [plant for plant in grown if any(region.contains(plant.pos) for region in shared)]


def nearest_plant(candidates: list[Plant], pos: Vec2) -> Plant | None:
    # Strict comparison keeps the first-found plant on ties.
    best: Plant | None = None
    best_distance = 0.0
    for plant in candidates:
        distance = distance_2d(plant.pos, pos)
        if best is None or distance < best_distance:
            best = plant
            best_distance = distance
    return best
