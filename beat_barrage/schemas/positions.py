"""World-space positions and the deferred position expressions built on them.

World space is a square centred on the origin with the y-axis pointing up,
spanning roughly [-50, 50] on both axes.

Two layers of deferral exist:

* ``LiveWorldPos`` (ConstantPos | PlayerPos | OffsetFromPlayer) survives
  queueing and is resolved against the player position at dispatch time.
* ``CmdBatchPos`` (LerpedPos | ConstantBatchPos | RandomGridPos) is evaluated
  at load time with a batch progress ``t`` and yields a LiveWorldPos.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

import numpy as np

from beat_barrage.errors import InvalidConfiguration

GRID_BOUNDS = (-50.0, 50.0)
BATCH_GRID_DIVISIONS = 10  # CmdBatchPos.RandomGrid
SCORE_GRID_DIVISIONS = 20  # grid() in scores


@dataclass(frozen=True)
class WorldPos:
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def origin(cls) -> WorldPos:
        return cls(0.0, 0.0)

    def __add__(self, other: WorldPos) -> WorldPos:
        return WorldPos(self.x + other.x, self.y + other.y)

    def __sub__(self, other: WorldPos) -> WorldPos:
        return WorldPos(self.x - other.x, self.y - other.y)

    def scale(self, factor: float) -> WorldPos:
        return WorldPos(self.x * factor, self.y * factor)

    def lerp(self, other: WorldPos, t: float) -> WorldPos:
        """Unclamped linear interpolation; t outside [0, 1] extrapolates."""
        return WorldPos(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
        )

    def distance(self, other: WorldPos) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


# --- LiveWorldPos --------------------------------------------------------


@dataclass(frozen=True)
class ConstantPos:
    """A fixed world position."""

    pos: WorldPos

    def resolve(self, player_pos: WorldPos) -> WorldPos:
        return self.pos

    def shifted(self, dx: float, dy: float) -> LiveWorldPos:
        return ConstantPos(self.pos + WorldPos(dx, dy))


@dataclass(frozen=True)
class PlayerPos:
    """Wherever the player is when the command is dispatched."""

    def resolve(self, player_pos: WorldPos) -> WorldPos:
        return player_pos

    def shifted(self, dx: float, dy: float) -> LiveWorldPos:
        return OffsetFromPlayer(ConstantPos(WorldPos(dx, dy)))


@dataclass(frozen=True)
class OffsetFromPlayer:
    """``player_pos + inner.resolve(player_pos)``."""

    inner: LiveWorldPos

    def resolve(self, player_pos: WorldPos) -> WorldPos:
        return player_pos + self.inner.resolve(player_pos)

    def shifted(self, dx: float, dy: float) -> LiveWorldPos:
        return OffsetFromPlayer(self.inner.shifted(dx, dy))


LiveWorldPos = Union[ConstantPos, PlayerPos, OffsetFromPlayer]


def as_live(value: LiveWorldPos | WorldPos | tuple[float, float]) -> LiveWorldPos:
    """Wrap plain positions into a ConstantPos; pass LiveWorldPos through."""
    if isinstance(value, (ConstantPos, PlayerPos, OffsetFromPlayer)):
        return value
    if isinstance(value, WorldPos):
        return ConstantPos(value)
    x, y = value
    return ConstantPos(WorldPos(float(x), float(y)))


def random_grid(
    rng: np.random.Generator,
    divisions: int = BATCH_GRID_DIVISIONS,
    bounds: tuple[float, float] = GRID_BOUNDS,
) -> WorldPos:
    """Pick the centre of a uniformly chosen cell of a square grid."""
    low, high = bounds
    cell = (high - low) / divisions
    ix, iy = rng.integers(0, divisions, size=2)
    return WorldPos(low + cell * (int(ix) + 0.5), low + cell * (int(iy) + 0.5))


# --- CmdBatchPos ---------------------------------------------------------


@dataclass(frozen=True)
class LerpedPos:
    """Interpolates between two static endpoints across a batch."""

    a: WorldPos
    b: WorldPos

    def at(self, t: float, rng: np.random.Generator | None = None) -> LiveWorldPos:
        return ConstantPos(self.a.lerp(self.b, t))


@dataclass(frozen=True)
class ConstantBatchPos:
    """The same LiveWorldPos for every step of the batch."""

    pos: LiveWorldPos

    def at(self, t: float, rng: np.random.Generator | None = None) -> LiveWorldPos:
        return self.pos


@dataclass(frozen=True)
class RandomGridPos:
    """A random grid cell, drawn once per step when the batch is expanded.

    Draws come only from the Generator passed in, so a seeded score load is
    reproducible.
    """

    divisions: int = BATCH_GRID_DIVISIONS

    def at(self, t: float, rng: np.random.Generator | None = None) -> LiveWorldPos:
        if rng is None:
            raise InvalidConfiguration("RandomGridPos needs a seeded numpy Generator")
        return ConstantPos(random_grid(rng, self.divisions))


CmdBatchPos = Union[LerpedPos, ConstantBatchPos, RandomGridPos]


# --- Color ---------------------------------------------------------------


@dataclass(frozen=True)
class Color:
    r: float
    g: float
    b: float
    a: float = 1.0

    @classmethod
    def named(cls, name: str) -> Color:
        try:
            return NAMED_COLORS[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown color name: {name!r}") from None


NAMED_COLORS = {
    "white": Color(1.0, 1.0, 1.0, 1.0),
    "red": Color(1.0, 0.0, 0.0, 1.0),
    "green": Color(0.0, 1.0, 0.0, 1.0),
    "blue": Color(0.0, 0.0, 1.0, 1.0),
    "transparent": Color(0.0, 0.0, 0.0, 0.0),
    "laser_red": Color(1.0, 0.1, 0.1, 1.0),
    "warning_red": Color(0.5, 0.1, 0.1, 1.0),
}
