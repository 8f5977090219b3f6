"""The game-world interface spawn commands act on, plus an in-memory world.

``SimpleWorld`` keeps entities and per-group directive state and nothing
else; rendering and collision live outside this package.
"""

from __future__ import annotations

import logging
from typing import Protocol, Union, runtime_checkable

from beat_barrage.schemas.entities import (
    BombEntity,
    BulletEntity,
    GroupFadeOut,
    GroupRotation,
    GroupState,
    LaserEntity,
)

logger = logging.getLogger(__name__)

Entity = Union[BulletEntity, LaserEntity, BombEntity]


@runtime_checkable
class World(Protocol):
    def spawn(self, entity: Entity) -> None: ...

    def clear_enemies(self) -> None: ...

    def set_group_rotation(self, group: int, rotation: GroupRotation | None) -> None: ...

    def set_fadeout(self, group: int, fadeout: GroupFadeOut | None) -> None: ...

    def set_hitbox(self, group: int, value: bool) -> None: ...

    def set_render(self, group: int, value: bool) -> None: ...

    def show_warmup(self, group: int, value: bool) -> None: ...


class SimpleWorld:
    """Holds live entities in spawn order and directive state per group."""

    def __init__(self):
        self.enemies: list[Entity] = []
        self.groups: dict[int, GroupState] = {}
        self.spawned_total = 0
        self.clears = 0

    def group(self, group: int) -> GroupState:
        return self.groups.setdefault(group, GroupState())

    def spawn(self, entity: Entity) -> None:
        self.enemies.append(entity)
        self.spawned_total += 1

    def clear_enemies(self) -> None:
        logger.debug("Clearing %d enemies", len(self.enemies))
        self.enemies.clear()
        self.clears += 1

    def set_group_rotation(self, group: int, rotation: GroupRotation | None) -> None:
        self.group(group).rotation = rotation

    def set_fadeout(self, group: int, fadeout: GroupFadeOut | None) -> None:
        self.group(group).fadeout = fadeout

    def set_hitbox(self, group: int, value: bool) -> None:
        self.group(group).hitbox = bool(value)

    def set_render(self, group: int, value: bool) -> None:
        self.group(group).render = bool(value)

    def show_warmup(self, group: int, value: bool) -> None:
        self.group(group).show_warmup = bool(value)

    def enemies_in_group(self, group: int) -> list[Entity]:
        return [e for e in self.enemies if e.group == group]

    def prune(self, now: float) -> int:
        """Drop entities whose lifetime ended before ``now``; returns how many."""
        before = len(self.enemies)
        self.enemies = [e for e in self.enemies if not e.is_dead(now)]
        return before - len(self.enemies)
