"""Split a window of beats into evenly spaced steps."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, Iterator

import numpy as np

from beat_barrage.errors import InvalidConfiguration
from beat_barrage.parsers.marked_beats import MarkedBeat
from beat_barrage.patterns.batch import CmdBatch
from beat_barrage.schemas.song_map import BeatAction
from beat_barrage.schemas.spawn import SpawnCmd, is_spawn_cmd
from beat_barrage.schemas.units import Beats

DEFAULT_DURATION = 4.0 * 4.0  # four measures of 4/4


@dataclass(frozen=True)
class BeatSplitter:
    """Enumerates ``(beat, t)`` steps across ``duration`` beats from ``start``.

    ``offset`` moves each step later and also advances its batch progress
    ``t``, so it stretches the pattern. ``delay`` only moves the beats, so it
    translates the pattern in time without touching ``t``.
    """

    start: float = 0.0
    duration: float = DEFAULT_DURATION
    frequency: float = 4.0
    offset: float = 0.0
    delay: float = 0.0

    def with_start(self, start: float) -> BeatSplitter:
        return replace(self, start=float(start))

    def with_duration(self, duration: float) -> BeatSplitter:
        return replace(self, duration=float(duration))

    def with_frequency(self, frequency: float) -> BeatSplitter:
        return replace(self, frequency=float(frequency))

    def with_offset(self, offset: float) -> BeatSplitter:
        return replace(self, offset=float(offset))

    def with_delay(self, delay: float) -> BeatSplitter:
        return replace(self, delay=float(delay))

    def _validate(self) -> None:
        fields_ = (self.start, self.duration, self.frequency, self.offset, self.delay)
        if not all(math.isfinite(v) for v in fields_):
            raise InvalidConfiguration(f"BeatSplitter fields must be finite: {self}")
        if self.frequency <= 0:
            raise InvalidConfiguration(f"BeatSplitter frequency must be > 0, got {self.frequency}")
        if self.duration < 0:
            raise InvalidConfiguration(f"BeatSplitter duration must be >= 0, got {self.duration}")

    def split(self) -> list[tuple[Beats, float]]:
        """Return every ``(beat, t)`` step of the window.

        Step k exists while ``k * frequency + offset <= duration``; its beat is
        ``start + k * frequency + offset + delay`` and its progress is
        ``(k * frequency + offset) / duration``.

        Raises:
            InvalidConfiguration: If frequency <= 0, duration < 0 or any field
                is not finite.
        """
        self._validate()
        steps: list[tuple[Beats, float]] = []
        k = 0
        while True:
            along = k * self.frequency + self.offset
            if along > self.duration:
                break
            t = along / self.duration if self.duration else 0.0
            steps.append((Beats(self.start + along + self.delay), t))
            k += 1
        return steps

    def __iter__(self) -> Iterator[MarkedBeat]:
        for i, (beat, t) in enumerate(self.split()):
            yield MarkedBeat(beat=beat, percent=t, i=i)

    def __len__(self) -> int:
        return len(self.split())

    def make_actions(
        self,
        template: CmdBatch,
        group: int = 0,
        rng: np.random.Generator | None = None,
    ) -> list[BeatAction]:
        """One BeatAction per step, built from ``template.at(t)``.

        Templates with RandomGridPos slots draw from ``rng``, which is then
        required (InvalidConfiguration otherwise).
        """
        return [
            BeatAction.new(beat, template.at(t, rng), group)
            for beat, t in self.split()
        ]

    def make_actions_custom(
        self,
        fn: Callable[[Beats, float], SpawnCmd | list[SpawnCmd] | None],
        group: int = 0,
    ) -> list[BeatAction]:
        """Let ``fn(beat, t)`` return zero, one or many SpawnCmds per step.

        Every command returned for a step shares that step's beat.

        Raises:
            InvalidConfiguration: If ``fn`` returns anything other than None,
                a SpawnCmd, or a list/tuple of SpawnCmds.
        """
        actions: list[BeatAction] = []
        for beat, t in self.split():
            result = fn(beat, t)
            if result is None:
                continue
            cmds = list(result) if isinstance(result, (list, tuple)) else [result]
            for cmd in cmds:
                if not is_spawn_cmd(cmd):
                    raise InvalidConfiguration(
                        f"Step at beat {float(beat)} returned {cmd!r}, expected a spawn command"
                    )
                actions.append(BeatAction.new(beat, cmd, group))
        return actions
