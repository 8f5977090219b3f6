"""Musical and wall-clock time units.

``Beats`` and ``Seconds`` are thin float subclasses so they can be passed
anywhere a float is expected while arithmetic between them keeps the unit.
"""

from __future__ import annotations

import math

from beat_barrage.errors import InvalidBeat


class _Unit(float):
    """Float that keeps its own type through +, -, scaling and negation."""

    def __add__(self, other):
        return type(self)(float(self) + float(other))

    __radd__ = __add__

    def __sub__(self, other):
        return type(self)(float(self) - float(other))

    def __rsub__(self, other):
        return type(self)(float(other) - float(self))

    def __mul__(self, other):
        return type(self)(float(self) * float(other))

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, type(self)):
            return float(self) / float(other)
        return type(self)(float(self) / float(other))

    def __neg__(self):
        return type(self)(-float(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({float(self)!r})"


class Beats(_Unit):
    """Musical time from song start, in beats."""

    def to_seconds(self, bpm: float) -> Seconds:
        return Seconds(float(self) * 60.0 / bpm)


class Seconds(_Unit):
    """Wall-clock time, in seconds."""

    def to_beats(self, bpm: float) -> Beats:
        return Beats(float(self) * bpm / 60.0)


def beat_length(bpm: float) -> Seconds:
    """Length of a single beat at the given tempo."""
    return Seconds(60.0 / bpm)


def ensure_finite(beat: float, what: str = "beat") -> Beats:
    """Return ``beat`` as Beats, raising InvalidBeat for NaN or +/-inf."""
    value = float(beat)
    if not math.isfinite(value):
        raise InvalidBeat(f"{what} must be finite, got {value!r}")
    return Beats(value)
