"""Tests for MIDI decoding and MarkedBeats."""

import mido
import pytest

from beat_barrage.errors import AssetNotFound, EmptyTrack, MalformedMidi
from beat_barrage.parsers.asset_loader import AssetLoader
from beat_barrage.parsers.marked_beats import MarkedBeat, MarkedBeats
from beat_barrage.parsers.midi_parser import (
    group_by_pitch,
    parse_midi,
    parse_midi_grouped,
    parse_midi_notes,
    ticks_per_beat_from_division,
)


def _write_midi(path, notes, ticks_per_beat=480, extra_tracks=()):
    """Write a type-1 MIDI file; ``notes`` is a list of (tick, note, velocity)."""
    midi = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)
    for track_notes in (notes, *extra_tracks):
        track = mido.MidiTrack()
        last = 0
        for tick, note, velocity in track_notes:
            track.append(mido.Message("note_on", note=note, velocity=velocity, time=tick - last))
            last = tick
        midi.tracks.append(track)
    midi.save(str(path))
    return path.read_bytes()


class TestMidiParser:
    def test_ticks_to_beats(self, tmp_path):
        data = _write_midi(tmp_path / "a.mid", [(0, 60, 100), (480, 60, 100), (960, 60, 100)])
        beats = parse_midi(data, bpm=150.0)
        assert beats.beats() == [0.0, 1.0, 2.0]

    def test_ppqn_scaling(self, tmp_path):
        data = _write_midi(tmp_path / "a.mid", [(96, 60, 100), (144, 60, 100)], ticks_per_beat=96)
        assert [b for b, _ in parse_midi_notes(data, 120.0)] == [1.0, 1.5]

    def test_pitch_is_note_over_127(self, tmp_path):
        data = _write_midi(tmp_path / "a.mid", [(0, 127, 90), (10, 0, 90)])
        beats = parse_midi(data, 150.0)
        assert beats.get_pitch(0) == 1.0
        assert beats.get_pitch(1) == 0.0

    def test_velocity_zero_ignored(self, tmp_path):
        data = _write_midi(tmp_path / "a.mid", [(0, 60, 100), (240, 60, 0), (480, 62, 100)])
        assert parse_midi(data, 150.0).beats() == [0.0, 1.0]

    def test_note_off_ignored(self, tmp_path):
        midi = mido.MidiFile(ticks_per_beat=480)
        track = mido.MidiTrack([
            mido.Message("note_on", note=60, velocity=100, time=0),
            mido.Message("note_off", note=60, velocity=0, time=240),
            mido.Message("note_on", note=60, velocity=100, time=240),
        ])
        midi.tracks.append(track)
        midi.save(str(tmp_path / "b.mid"))
        assert parse_midi((tmp_path / "b.mid").read_bytes(), 150.0).beats() == [0.0, 1.0]

    def test_only_first_track(self, tmp_path):
        data = _write_midi(
            tmp_path / "a.mid",
            [(0, 60, 100)],
            extra_tracks=[[(0, 70, 100), (480, 70, 100)]],
        )
        assert len(parse_midi(data, 150.0)) == 1

    def test_percent_relative_to_last(self, tmp_path):
        data = _write_midi(tmp_path / "a.mid", [(0, 60, 100), (480, 60, 100), (1920, 60, 100)])
        beats = parse_midi(data, 150.0)
        assert [b.percent for b in beats] == [0.0, 0.25, 1.0]

    def test_malformed_bytes(self):
        with pytest.raises(MalformedMidi):
            parse_midi(b"not a midi file at all", 150.0, source="junk.mid")

    def test_malformed_message_names_source(self):
        with pytest.raises(MalformedMidi, match="junk.mid"):
            parse_midi(b"MThd\x00\x00", 150.0, source="junk.mid")


class TestDivision:
    def test_metrical(self):
        assert ticks_per_beat_from_division(480, 150.0) == 480.0

    def test_zero_metrical_rejected(self):
        with pytest.raises(MalformedMidi):
            ticks_per_beat_from_division(0, 150.0)

    def test_smpte_25fps(self):
        # -25 fps, 40 ticks per frame -> 1000 ticks per second
        division = ((256 - 25) << 8) | 40
        assert ticks_per_beat_from_division(division, 120.0) == pytest.approx(500.0)

    def test_smpte_signed_division(self):
        division = ((256 - 25) << 8) | 40
        signed = division - 0x10000
        assert ticks_per_beat_from_division(signed, 120.0) == pytest.approx(500.0)

    def test_smpte_drop_frame(self):
        division = ((256 - 29) << 8) | 1
        assert ticks_per_beat_from_division(division, 60.0) == pytest.approx(29.97)

    def test_smpte_unknown_rate(self):
        with pytest.raises(MalformedMidi):
            ticks_per_beat_from_division(((256 - 23) << 8) | 4, 120.0)


class TestGrouped:
    def test_groups_consecutive_pitches(self, tmp_path):
        notes = [(0, 60, 100), (120, 60, 100), (240, 64, 100), (360, 60, 100)]
        groups = parse_midi_grouped(_write_midi(tmp_path / "a.mid", notes), 150.0)
        assert [len(g) for g in groups] == [2, 1, 1]
        assert [b.group_index for b in groups[0]] == [0, 1]
        assert groups[0][1].group_len == 2
        assert [b.i for g in groups for b in g] == [0, 1, 2, 3]

    def test_group_empty(self):
        assert group_by_pitch(MarkedBeats()) == []


class TestMarkedBeats:
    def _beats(self):
        return MarkedBeats.from_notes([(0.0, 0.5), (2.0, 0.6), (4.0, 0.7)])

    def test_offset(self):
        shifted = self._beats().offset(80.0)
        assert shifted.beats() == [80.0, 82.0, 84.0]
        assert [b.percent for b in shifted] == [0.0, 0.5, 1.0]

    def test_normalize_pitch(self):
        normalized = self._beats().normalize_pitch()
        assert [normalized.get_pitch(i) for i in range(3)] == pytest.approx([0.0, 0.5, 1.0])

    def test_normalize_flat_pitch_unchanged(self, caplog):
        flat = MarkedBeats.from_notes([(0.0, 0.5), (1.0, 0.5)])
        assert flat.normalize_pitch() is flat
        assert "all 2 pitches equal" in caplog.text

    def test_accessors(self):
        beats = self._beats()
        assert beats.len() == 3
        assert beats.get_beat(1) == 2.0
        assert beats.get_percent(1) == 0.5
        assert beats.last_beat == 4.0

    def test_concat(self):
        combined = self._beats() + self._beats().offset(8.0)
        assert len(combined) == 6

    def test_empty_last_beat(self):
        with pytest.raises(EmptyTrack):
            MarkedBeats().last_beat

    def test_single_beat_at_zero(self):
        beats = MarkedBeats.from_notes([(0.0, None)])
        assert beats[0] == MarkedBeat(beat=0.0, percent=0.0, pitch=None, i=0)


class TestAssetLoader:
    def test_open_relative_to_root(self, tmp_path):
        (tmp_path / "x.bin").write_bytes(b"abc")
        assert AssetLoader(tmp_path).open("x.bin") == b"abc"

    def test_missing(self, tmp_path):
        with pytest.raises(AssetNotFound):
            AssetLoader(tmp_path).open("nope.mid")

    def test_missing_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AssetLoader(tmp_path).resolve("nope.mid")
