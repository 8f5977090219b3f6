"""Spawn-shape templates evaluated across a batch of beats.

A CmdBatch holds CmdBatchPos slots; ``at(t)`` turns it into one concrete
SpawnCmd for batch progress ``t``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from beat_barrage.schemas.positions import (
    CmdBatchPos,
    ConstantBatchPos,
    LerpedPos,
    PlayerPos,
    WorldPos,
)
from beat_barrage.schemas.spawn import Bullet, CircleBomb, LaserThruPoints, SpawnCmd

Point = tuple[float, float]


@dataclass(frozen=True)
class BulletBatch:
    start: CmdBatchPos
    end: CmdBatchPos

    def at(self, t: float, rng: np.random.Generator | None = None) -> SpawnCmd:
        return Bullet(start=self.start.at(t, rng), end=self.end.at(t, rng))


@dataclass(frozen=True)
class LaserBatch:
    a: CmdBatchPos
    b: CmdBatchPos

    def at(self, t: float, rng: np.random.Generator | None = None) -> SpawnCmd:
        return LaserThruPoints(a=self.a.at(t, rng), b=self.b.at(t, rng))


@dataclass(frozen=True)
class CircleBombBatch:
    pos: CmdBatchPos

    def at(self, t: float, rng: np.random.Generator | None = None) -> SpawnCmd:
        return CircleBomb(pos=self.pos.at(t, rng))


CmdBatch = Union[BulletBatch, LaserBatch, CircleBombBatch]


def _lerped(pair: tuple[Point, Point]) -> LerpedPos:
    a, b = pair
    return LerpedPos(WorldPos(*a), WorldPos(*b))


def bullet(starts: tuple[Point, Point], ends: tuple[Point, Point]) -> BulletBatch:
    """Bullets whose start sweeps starts[0]->starts[1] and end sweeps ends[0]->ends[1]."""
    return BulletBatch(start=_lerped(starts), end=_lerped(ends))


def bullet_player(starts: tuple[Point, Point]) -> BulletBatch:
    """Bullets aimed at wherever the player is when each one spawns."""
    return BulletBatch(start=_lerped(starts), end=ConstantBatchPos(PlayerPos()))
