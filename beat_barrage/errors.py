"""Exceptions raised while loading a score.

Everything here is fatal to a level load. Once a SongMap has been handed to
the Scheduler nothing in this module is raised any more.
"""

from __future__ import annotations


class BarrageError(Exception):
    """Base class for all beat-barrage errors."""


class InvalidConfiguration(BarrageError, ValueError):
    """A pattern builder was used with impossible parameters (e.g. frequency <= 0)."""


class InvalidBeat(BarrageError, ValueError):
    """A beat value is NaN or infinite and cannot be ordered in the queue."""


class MalformedMidi(BarrageError, ValueError):
    """A MIDI file could not be decoded."""


class EmptyTrack(BarrageError, ValueError):
    """A beat sequence has no entries but its last beat was requested."""


class AssetNotFound(BarrageError, FileNotFoundError):
    """The asset loader could not find the requested resource."""


class ScriptError(BarrageError):
    """Evaluating a score failed.

    Attributes:
        path: Score file the error came from, if known.
        line: 1-based line number inside the score, if known.
        key: Offending field or spawn_cmd tag, if the error is about data.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        line: int | None = None,
        key: str | None = None,
    ):
        self.message = message
        self.path = path
        self.line = line
        self.key = key
        super().__init__(self._format())

    def _format(self) -> str:
        where = ""
        if self.path:
            where = self.path
            if self.line is not None:
                where += f":{self.line}"
            where += ": "
        elif self.line is not None:
            where = f"line {self.line}: "
        suffix = f" (key: {self.key})" if self.key else ""
        return f"{where}{self.message}{suffix}"
