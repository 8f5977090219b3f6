"""Map elapsed playback time onto song beats."""

from __future__ import annotations

from dataclasses import dataclass

from beat_barrage.schemas.song_map import SongMap
from beat_barrage.schemas.units import Beats, Seconds


@dataclass(frozen=True)
class SongClock:
    """Beat clock for a song that starts playing ``skip_amount`` beats in.

    The clock never reads wall time itself; callers pass the seconds elapsed
    since playback started.
    """

    bpm: float
    skip_amount: Beats = Beats(0.0)

    @classmethod
    def for_song(cls, song_map: SongMap) -> SongClock:
        return cls(bpm=song_map.bpm, skip_amount=Beats(song_map.skip_amount))

    def beats_at(self, elapsed: float) -> Beats:
        return Seconds(elapsed).to_beats(self.bpm) + self.skip_amount

    def seconds_at(self, beat: float) -> Seconds:
        """Elapsed playback seconds at which ``beat`` is reached."""
        return Beats(beat - self.skip_amount).to_seconds(self.bpm)

    def beat_percent(self, elapsed: float) -> float:
        """Fraction of the way through the current beat, in [0, 1)."""
        return float(self.beats_at(elapsed)) % 1.0
