"""Decode Standard MIDI Files into beat sequences.

Only the first track is read, and only note-on messages with a non-zero
velocity count as notes. A note-on with velocity 0 is a note-off by MIDI
convention and is ignored along with explicit note-offs.
"""

from __future__ import annotations

import io
import logging
from itertools import groupby

import mido

from beat_barrage.errors import MalformedMidi
from beat_barrage.parsers.marked_beats import MarkedBeat, MarkedBeats
from beat_barrage.schemas.units import beat_length

logger = logging.getLogger(__name__)

MAX_NOTE = 127

# SMPTE frame-rate codes; 29 stands for 29.97 drop-frame.
_SMPTE_FPS = {24: 24.0, 25: 25.0, 29: 29.97, 30: 30.0}


def ticks_per_beat_from_division(division: int, bpm: float) -> float:
    """Turn the header's division word into ticks per beat.

    Metrical headers store ticks per quarter note directly. SMPTE headers
    (top bit set) store a negative frame rate and ticks per frame, which is
    converted through the tempo: ``fps * subframes * seconds_per_beat``.

    Args:
        division: The raw 16-bit division field, signed or unsigned.
        bpm: Song tempo, only used for SMPTE timing.
    """
    raw = division & 0xFFFF
    if not raw & 0x8000:
        if raw == 0:
            raise MalformedMidi("MIDI header has zero ticks per beat")
        return float(raw)

    fps_code = 256 - (raw >> 8)
    subframes = raw & 0xFF
    fps = _SMPTE_FPS.get(fps_code)
    if fps is None or subframes == 0:
        raise MalformedMidi(f"Unsupported SMPTE timing: fps={fps_code}, subframes={subframes}")
    return fps * subframes * float(beat_length(bpm))


def _read_midi_file(data: bytes, source: str) -> mido.MidiFile:
    try:
        return mido.MidiFile(file=io.BytesIO(data))
    except (OSError, EOFError, ValueError, KeyError, IndexError) as exc:
        raise MalformedMidi(f"Could not parse MIDI file {source}: {exc}") from exc


def parse_midi_notes(data: bytes, bpm: float, source: str = "<bytes>") -> list[tuple[float, float]]:
    """Decode note-on events from track 0 as ``(beat, pitch01)`` pairs.

    Args:
        data: Raw bytes of a Standard MIDI File.
        bpm: Song tempo; only matters for SMPTE-timed files.
        source: Name used in error messages.

    Returns:
        Notes in file order, with ``beat = tick / ticks_per_beat`` and
        ``pitch01 = note / 127``.

    Raises:
        MalformedMidi: If the file cannot be parsed or has no tracks.
    """
    midi = _read_midi_file(data, source)
    if not midi.tracks:
        raise MalformedMidi(f"MIDI file {source} has no tracks")
    if len(midi.tracks) > 1:
        logger.debug("%s has %d tracks; only track 0 is used", source, len(midi.tracks))

    ticks_per_beat = ticks_per_beat_from_division(midi.ticks_per_beat, bpm)

    notes: list[tuple[float, float]] = []
    tick = 0
    for msg in midi.tracks[0]:
        tick += msg.time
        if msg.type == "note_on" and msg.velocity > 0:
            notes.append((tick / ticks_per_beat, msg.note / MAX_NOTE))

    logger.info("Decoded %d notes from %s", len(notes), source)
    return notes


def parse_midi(data: bytes, bpm: float, source: str = "<bytes>") -> MarkedBeats:
    """Decode a MIDI file into a flat MarkedBeats sequence."""
    return MarkedBeats.from_notes(parse_midi_notes(data, bpm, source))


def group_by_pitch(beats: MarkedBeats) -> list[MarkedBeats]:
    """Split a sequence into runs of consecutive same-pitch notes.

    Each beat keeps its index in the whole sequence and gains its position
    within the run (``group_index``) and the run's length (``group_len``).
    """
    groups: list[MarkedBeats] = []
    for _, run in groupby(beats, key=lambda b: b.pitch):
        run = list(run)
        groups.append(MarkedBeats(
            MarkedBeat(
                beat=b.beat,
                percent=b.percent,
                pitch=b.pitch,
                i=b.i,
                group_index=j,
                group_len=len(run),
            )
            for j, b in enumerate(run)
        ))
    return groups


def parse_midi_grouped(data: bytes, bpm: float, source: str = "<bytes>") -> list[MarkedBeats]:
    """Decode a MIDI file into runs of same-pitch notes."""
    return group_by_pitch(parse_midi(data, bpm, source))
