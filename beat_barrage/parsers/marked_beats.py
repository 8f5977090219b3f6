"""Beat sequences annotated with progress and pitch.

A MarkedBeat is what pattern helpers receive for every step, whether the
step came from a BeatSplitter or from a MIDI file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator

from beat_barrage.errors import EmptyTrack
from beat_barrage.schemas.units import Beats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkedBeat:
    beat: Beats
    percent: float = 0.0
    pitch: float | None = None  # 0.0-1.0, MIDI key / 127 unless normalized
    i: int = 0  # 0-based index within the sequence
    group_index: int = 0  # position inside a same-pitch run (grouped MIDI only)
    group_len: int = 1


class MarkedBeats:
    """An ordered, immutable sequence of MarkedBeat.

    All transforming methods return a new sequence.
    """

    def __init__(self, beats: Iterable[MarkedBeat] = ()):
        self._beats: tuple[MarkedBeat, ...] = tuple(beats)

    @classmethod
    def from_notes(cls, notes: Iterable[tuple[float, float | None]]) -> MarkedBeats:
        """Build from (beat, pitch) pairs, attaching ``percent = beat / last_beat``."""
        pairs = [(float(beat), pitch) for beat, pitch in notes]
        last = pairs[-1][0] if pairs else 0.0
        return cls(
            MarkedBeat(
                beat=Beats(beat),
                percent=beat / last if last else 0.0,
                pitch=pitch,
                i=i,
            )
            for i, (beat, pitch) in enumerate(pairs)
        )

    def __len__(self) -> int:
        return len(self._beats)

    def __iter__(self) -> Iterator[MarkedBeat]:
        return iter(self._beats)

    def __getitem__(self, index: int) -> MarkedBeat:
        return self._beats[index]

    def __add__(self, other: MarkedBeats) -> MarkedBeats:
        return MarkedBeats(self._beats + tuple(other))

    def __repr__(self) -> str:
        return f"MarkedBeats({len(self)} beats)"

    def len(self) -> int:
        return len(self)

    @property
    def last_beat(self) -> Beats:
        if not self._beats:
            raise EmptyTrack("No beats in sequence; last beat is undefined")
        return self._beats[-1].beat

    def offset(self, amount: float) -> MarkedBeats:
        """Shift every beat by ``amount``; percents are left untouched."""
        return MarkedBeats(replace(b, beat=b.beat + amount) for b in self._beats)

    def normalize_pitch(self) -> MarkedBeats:
        """Rescale pitches so the lowest maps to 0.0 and the highest to 1.0.

        Beats without a pitch are kept as-is. When every pitch is the same
        there is nothing to stretch and the sequence is returned unchanged.
        """
        pitches = [b.pitch for b in self._beats if b.pitch is not None]
        if not pitches:
            return self
        low, high = min(pitches), max(pitches)
        if low == high:
            logger.warning("normalize_pitch: all %d pitches equal (%.3f), leaving as-is",
                           len(pitches), low)
            return self
        return MarkedBeats(
            b if b.pitch is None else replace(b, pitch=(b.pitch - low) / (high - low))
            for b in self._beats
        )

    def get_beat(self, index: int) -> Beats:
        return self._beats[index].beat

    def get_percent(self, index: int) -> float:
        return self._beats[index].percent

    def get_pitch(self, index: int) -> float | None:
        return self._beats[index].pitch

    def beats(self) -> list[Beats]:
        return [b.beat for b in self._beats]
