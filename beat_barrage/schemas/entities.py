"""Live entities and group directives a World receives from spawn commands.

All positions here are already resolved. Times are in beats.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from beat_barrage.schemas.positions import Color, WorldPos
from beat_barrage.schemas.units import Beats


@dataclass
class BulletEntity:
    """A bullet that travels from start to end over ``duration`` beats."""

    start: WorldPos
    end: WorldPos
    start_beat: Beats
    duration: Beats
    group: int = 0

    @property
    def end_beat(self) -> Beats:
        return self.start_beat + self.duration

    def position_at(self, now: float) -> WorldPos:
        if self.duration <= 0:
            return self.end
        return self.start.lerp(self.end, (now - self.start_beat) / self.duration)

    def is_dead(self, now: float) -> bool:
        return now > self.end_beat


@dataclass
class LaserEntity:
    """An infinite line through ``a`` and ``b``.

    The laser is telegraphed for ``warmup`` beats starting at ``start_beat``,
    lethal for ``active`` beats, then fades for ``cooldown`` beats.
    """

    a: WorldPos
    b: WorldPos
    start_beat: Beats
    warmup: Beats
    active: Beats
    cooldown: Beats
    group: int = 0

    @classmethod
    def through_point(
        cls,
        position: WorldPos,
        angle_degrees: float,
        start_beat: Beats,
        warmup: Beats,
        active: Beats,
        cooldown: Beats,
        group: int = 0,
    ) -> LaserEntity:
        angle = math.radians(angle_degrees)
        direction = WorldPos(math.cos(angle), math.sin(angle))
        return cls(position, position + direction, start_beat, warmup, active, cooldown, group)

    @property
    def fire_beat(self) -> Beats:
        return self.start_beat + self.warmup

    @property
    def end_beat(self) -> Beats:
        return self.fire_beat + self.active + self.cooldown

    def is_lethal(self, now: float) -> bool:
        return self.fire_beat <= now < self.fire_beat + self.active

    def is_dead(self, now: float) -> bool:
        return now > self.end_beat


@dataclass
class BombEntity:
    """A circular bomb that detonates ``warmup`` beats after it appears."""

    pos: WorldPos
    start_beat: Beats
    warmup: Beats
    active: Beats = Beats(1.0)
    group: int = 0

    @property
    def fire_beat(self) -> Beats:
        return self.start_beat + self.warmup

    @property
    def end_beat(self) -> Beats:
        return self.fire_beat + self.active

    def is_lethal(self, now: float) -> bool:
        return self.fire_beat <= now < self.end_beat

    def is_dead(self, now: float) -> bool:
        return now > self.end_beat


@dataclass(frozen=True)
class GroupRotation:
    """Rotate a group from start_angle to end_angle (degrees) about pivot."""

    start_angle: float
    end_angle: float
    duration: Beats
    pivot: WorldPos
    start_beat: Beats

    def angle_at(self, now: float) -> float:
        if self.duration <= 0:
            return self.end_angle
        t = min(max((now - self.start_beat) / self.duration, 0.0), 1.0)
        return self.start_angle + (self.end_angle - self.start_angle) * t


@dataclass(frozen=True)
class GroupFadeOut:
    color: Color
    duration: Beats
    start_beat: Beats


@dataclass
class GroupState:
    """Directive state the World keeps per enemy group."""

    rotation: GroupRotation | None = None
    fadeout: GroupFadeOut | None = None
    hitbox: bool = True
    render: bool = True
    show_warmup: bool = True
