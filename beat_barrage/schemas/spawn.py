"""Spawn commands: the atomic world mutations a score is made of.

Each command is a small frozen dataclass. Dispatch goes through the
``_EXECUTORS`` table keyed on the command type, and each command's warmup
through ``warmup_for``. A command handed to the world at beat ``now`` treats
``now`` as the moment its warmup begins, which is why BeatAction delivers it
``warmup`` beats before its nominal beat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from beat_barrage.schemas.entities import (
    BombEntity,
    BulletEntity,
    GroupFadeOut,
    GroupRotation,
    LaserEntity,
)
from beat_barrage.schemas.positions import Color, LiveWorldPos, WorldPos
from beat_barrage.schemas.units import Beats

logger = logging.getLogger(__name__)

LASER_WARMUP = Beats(4.0)
BOMB_WARMUP = Beats(4.0)
BULLET_DURATION = Beats(4.0)
LASER_ACTIVE = Beats(1.0)
LASER_COOLDOWN = Beats(1.0)


@dataclass(frozen=True)
class LaserDurations:
    """Phase lengths of a laser, in beats."""

    warmup: float = float(LASER_WARMUP)
    active: float = float(LASER_ACTIVE)
    cooldown: float = float(LASER_COOLDOWN)


DEFAULT_LASER_DURATIONS = LaserDurations()


@dataclass(frozen=True)
class Bullet:
    kind = "bullet"

    start: LiveWorldPos
    end: LiveWorldPos


@dataclass(frozen=True)
class Laser:
    """A laser through ``position`` at ``angle`` degrees."""

    kind = "laser"

    position: LiveWorldPos
    angle: float
    durations: LaserDurations = DEFAULT_LASER_DURATIONS


@dataclass(frozen=True)
class LaserThruPoints:
    kind = "laser"

    a: LiveWorldPos
    b: LiveWorldPos
    durations: LaserDurations = DEFAULT_LASER_DURATIONS


@dataclass(frozen=True)
class CircleBomb:
    kind = "bomb"

    pos: LiveWorldPos


@dataclass(frozen=True)
class RotationSpec:
    start_angle: float
    end_angle: float
    duration: float
    pivot: LiveWorldPos


@dataclass(frozen=True)
class FadeOutSpec:
    color: Color
    duration: float


@dataclass(frozen=True)
class SetGroupRotation:
    """Start (``rotation`` set) or stop (``None``) rotating the group."""

    kind = "set_rotation"

    rotation: RotationSpec | None = None


@dataclass(frozen=True)
class SetFadeOut:
    kind = "set_fadeout"

    fadeout: FadeOutSpec | None = None


@dataclass(frozen=True)
class SetHitbox:
    kind = "set_hitbox"

    value: bool


@dataclass(frozen=True)
class SetRender:
    kind = "set_render"

    value: bool


@dataclass(frozen=True)
class ShowWarmup:
    kind = "show_warmup"

    value: bool


@dataclass(frozen=True)
class ClearEnemies:
    kind = "clear_enemies"


SpawnCmd = Union[
    Bullet,
    Laser,
    LaserThruPoints,
    CircleBomb,
    SetGroupRotation,
    SetFadeOut,
    SetHitbox,
    SetRender,
    ShowWarmup,
    ClearEnemies,
]

SPAWN_CMD_TYPES = SpawnCmd.__args__


def is_spawn_cmd(value: object) -> bool:
    return isinstance(value, SPAWN_CMD_TYPES)


def warmup_for(cmd: SpawnCmd) -> Beats:
    """How many beats before its nominal beat ``cmd`` must be delivered."""
    if isinstance(cmd, (Laser, LaserThruPoints)):
        return Beats(cmd.durations.warmup)
    if isinstance(cmd, CircleBomb):
        return BOMB_WARMUP
    return Beats(0.0)


def _exec_bullet(cmd: Bullet, now, world, player_pos, group):
    world.spawn(BulletEntity(
        start=cmd.start.resolve(player_pos),
        end=cmd.end.resolve(player_pos),
        start_beat=now,
        duration=BULLET_DURATION,
        group=group,
    ))


def _exec_laser(cmd: Laser, now, world, player_pos, group):
    d = cmd.durations
    world.spawn(LaserEntity.through_point(
        cmd.position.resolve(player_pos),
        cmd.angle,
        start_beat=now,
        warmup=Beats(d.warmup),
        active=Beats(d.active),
        cooldown=Beats(d.cooldown),
        group=group,
    ))


def _exec_laser_thru_points(cmd: LaserThruPoints, now, world, player_pos, group):
    d = cmd.durations
    world.spawn(LaserEntity(
        a=cmd.a.resolve(player_pos),
        b=cmd.b.resolve(player_pos),
        start_beat=now,
        warmup=Beats(d.warmup),
        active=Beats(d.active),
        cooldown=Beats(d.cooldown),
        group=group,
    ))


def _exec_circle_bomb(cmd: CircleBomb, now, world, player_pos, group):
    world.spawn(BombEntity(
        pos=cmd.pos.resolve(player_pos),
        start_beat=now,
        warmup=BOMB_WARMUP,
        group=group,
    ))


def _exec_set_rotation(cmd: SetGroupRotation, now, world, player_pos, group):
    rotation = None
    if cmd.rotation is not None:
        spec = cmd.rotation
        rotation = GroupRotation(
            start_angle=spec.start_angle,
            end_angle=spec.end_angle,
            duration=Beats(spec.duration),
            pivot=spec.pivot.resolve(player_pos),
            start_beat=now,
        )
    world.set_group_rotation(group, rotation)


def _exec_set_fadeout(cmd: SetFadeOut, now, world, player_pos, group):
    fadeout = None
    if cmd.fadeout is not None:
        fadeout = GroupFadeOut(
            color=cmd.fadeout.color,
            duration=Beats(cmd.fadeout.duration),
            start_beat=now,
        )
    world.set_fadeout(group, fadeout)


def _exec_set_hitbox(cmd: SetHitbox, now, world, player_pos, group):
    world.set_hitbox(group, cmd.value)


def _exec_set_render(cmd: SetRender, now, world, player_pos, group):
    world.set_render(group, cmd.value)


def _exec_show_warmup(cmd: ShowWarmup, now, world, player_pos, group):
    world.show_warmup(group, cmd.value)


def _exec_clear_enemies(cmd: ClearEnemies, now, world, player_pos, group):
    world.clear_enemies()


_EXECUTORS = {
    Bullet: _exec_bullet,
    Laser: _exec_laser,
    LaserThruPoints: _exec_laser_thru_points,
    CircleBomb: _exec_circle_bomb,
    SetGroupRotation: _exec_set_rotation,
    SetFadeOut: _exec_set_fadeout,
    SetHitbox: _exec_set_hitbox,
    SetRender: _exec_set_render,
    ShowWarmup: _exec_show_warmup,
    ClearEnemies: _exec_clear_enemies,
}


def execute(
    cmd: SpawnCmd,
    now: float,
    world,
    player_pos: WorldPos,
    group: int = 0,
) -> None:
    """Apply ``cmd`` to ``world`` as of beat ``now``.

    Late-bound positions are resolved against ``player_pos`` here and nowhere
    earlier.
    """
    logger.debug("Executing %s at beat %.3f (group %d)", type(cmd).__name__, now, group)
    _EXECUTORS[type(cmd)](cmd, Beats(now), world, player_pos, group)
