"""Tests for scripted score evaluation and file loading."""

import json
import textwrap

import mido
import pytest

from beat_barrage.config import EngineConfig
from beat_barrage.errors import AssetNotFound, MalformedMidi, ScriptError
from beat_barrage.runtime.scheduler import Scheduler
from beat_barrage.runtime.world import SimpleWorld
from beat_barrage.schemas.positions import ConstantPos, OffsetFromPlayer, PlayerPos, WorldPos
from beat_barrage.schemas.spawn import (
    LASER_WARMUP,
    Bullet,
    CircleBomb,
    ClearEnemies,
    Laser,
    LaserThruPoints,
    SetFadeOut,
    SetHitbox,
)
from beat_barrage.score.evaluator import ScoreEvaluator, evaluate_score
from beat_barrage.score.loader import load_song_map


def _evaluate(source, **config):
    return ScoreEvaluator(EngineConfig(**config)).evaluate(textwrap.dedent(source), "score.py")


def _write_kick(path):
    midi = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    for i, note in enumerate((36, 36, 38, 36)):
        track.append(mido.Message("note_on", note=note, velocity=100, time=0 if i == 0 else 480))
    midi.tracks.append(track)
    midi.save(str(path))


class TestHostVocabulary:
    def test_empty_score_has_defaults(self):
        song = _evaluate("")
        assert song.bpm == 150.0
        assert song.skip_amount == 0.0
        assert song.actions == []

    def test_settings_and_single_action(self):
        song = _evaluate("""
            set_bpm(128)
            set_skip_amount(32)
            add_action(beat_action(40.0, 0, bullet(TOPLEFT, player())))
        """)
        assert song.bpm == 128.0
        assert song.skip_amount == 32.0
        assert song.actions[0].cmd == Bullet(ConstantPos(WorldPos(-50.0, 50.0)), PlayerPos())

    def test_add_action_with_beat_uses_current_group(self):
        song = _evaluate("""
            set_curr_group(4)
            add_action(10.0, None, clear_enemies())
            add_action(11.0, 2, clear_enemies())
        """)
        assert [a.group for a in song.actions] == [4, 2]

    def test_make_actions_with_splitter_and_template(self):
        song = _evaluate("""
            every4 = beat_splitter(0.0, 4.0)
            make_actions(every4, bullet_batch(lerped(TOPLEFT, TOPRIGHT), lerped(BOTLEFT, BOTRIGHT)))
        """)
        assert len(song.actions) == 5
        assert song.actions[2].cmd == Bullet(ConstantPos(WorldPos(0, 50)), ConstantPos(WorldPos(0, -50)))

    def test_make_actions_with_function(self):
        song = _evaluate("""
            def spawn(b):
                if b.i == 1:
                    return None
                return [laser_angle(ORIGIN, 90.0 * b.percent), bomb(offset_player(pos(2, 0)))]

            make_actions(beat_splitter(16.0, 8.0), spawn)
        """)
        assert len(song.actions) == 4
        laser = song.actions[0]
        assert isinstance(laser.cmd, Laser)
        assert laser.nominal_beat == 16.0
        assert laser.delivery_beat == 16.0 - LASER_WARMUP
        assert song.actions[3].cmd == CircleBomb(OffsetFromPlayer(ConstantPos(WorldPos(2, 0))))
        assert song.actions[2].cmd.angle == 90.0

    def test_make_actions_beat_action_keeps_its_beat(self):
        song = _evaluate("""
            make_actions(beat_splitter(0.0, 8.0), lambda b: beat_action(b.beat + 1, 7, clear_enemies()))
        """)
        assert [float(a.nominal_beat) for a in song.actions] == [1.0, 9.0, 17.0]
        assert {a.group for a in song.actions} == {7}

    def test_make_actions_with_data_table(self):
        song = _evaluate("""
            make_actions(beat_splitter(0.0, 16.0), lambda b: {"spawn_cmd": "bomb", "pos": "player"})
        """)
        assert [float(a.nominal_beat) for a in song.actions] == [0.0, 16.0]

    def test_laser_builders(self):
        song = _evaluate("""
            add_action(20.0, 0, laser(pos(0, 0), pos(1, 1), durations(2.0, 1.0, 1.0)))
            add_action(20.0, 0, laser_angle(ORIGIN, 45.0))
        """)
        thru, angled = song.actions
        assert isinstance(thru.cmd, LaserThruPoints)
        assert thru.delivery_beat == 18.0
        assert angled.delivery_beat == 16.0

    def test_bullet_angle_builders(self):
        song = _evaluate("""
            add_action(0.0, 0, bullet_angle_start(ORIGIN, 0.0, 10.0))
            add_action(0.0, 0, bullet_angle_end(player(), 90.0, 10.0))
        """)
        start_cmd, end_cmd = (a.cmd for a in song.actions)
        assert start_cmd.end.resolve(WorldPos()) == WorldPos(10.0, 0.0)
        resolved = end_cmd.start.resolve(WorldPos(5.0, 5.0))
        assert resolved.x == pytest.approx(5.0)
        assert resolved.y == pytest.approx(-5.0)

    def test_fadeout_clear(self):
        song = _evaluate("fadeout_clear(32.0, 1, 4.0)")
        cmds = [(float(a.nominal_beat), type(a.cmd)) for a in song.actions]
        assert (32.0, SetFadeOut) in cmds
        assert (32.0, SetHitbox) in cmds
        assert (36.0, ClearEnemies) in cmds
        assert all(a.group == 1 for a in song.actions)

    def test_positions(self):
        song = _evaluate("""
            a = lerp_pos(TOPLEFT, TOPRIGHT, 0.5)
            c = circle(0, 0, 10, 90)
            add_action(0.0, 0, bomb(a))
            add_action(0.0, 0, bomb(c))
        """)
        assert song.actions[0].cmd.pos == ConstantPos(WorldPos(0.0, 50.0))
        c = song.actions[1].cmd.pos.pos
        assert c.x == pytest.approx(0.0, abs=1e-9)
        assert c.y == pytest.approx(10.0)

    def test_constants(self):
        song = _evaluate("set_skip_amount(LASER_WARMUP + BOMB_WARMUP)")
        assert song.skip_amount == 8.0


class TestSongmapBinding:
    def test_plain_data(self):
        song = _evaluate("""
            SONGMAP = [
                {"bpm": 170},
                {"beat": 4, "spawn_cmd": "bullet", "start_pos": [0, 50], "end_pos": "player"},
            ]
        """)
        assert song.bpm == 170.0
        assert len(song.actions) == 1

    def test_song_map_object(self):
        song = _evaluate("""
            SONGMAP = default_map()
            SONGMAP.bpm = 111
            SONGMAP.add_action(beat_action(1, 0, clear_enemies()))
        """)
        assert song.bpm == 111
        assert len(song.actions) == 1

    def test_bad_data_is_script_error(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate('SONGMAP = [{"beat": 1, "spawn_cmd": "teleport"}]')
        assert excinfo.value.path == "score.py"
        assert excinfo.value.key == "spawn_cmd"


class TestDeterminism:
    SCORE = """
        for i in range(8):
            add_action(float(i), 0, bomb(grid()))
        make_actions(beat_splitter(8.0, 2.0), bomb_batch(random_grid_pos()))
        set_skip_amount(random(0, 4))
    """

    def test_same_seed_same_map(self):
        a = _evaluate(self.SCORE, seed=1234)
        b = _evaluate(self.SCORE, seed=1234)
        assert [x.cmd for x in a.actions] == [x.cmd for x in b.actions]
        assert a.skip_amount == b.skip_amount

    def test_evaluator_reseeds_per_run(self):
        evaluator = ScoreEvaluator(EngineConfig(seed=5))
        a = evaluator.evaluate(textwrap.dedent(self.SCORE))
        b = evaluator.evaluate(textwrap.dedent(self.SCORE))
        assert [x.cmd for x in a.actions] == [x.cmd for x in b.actions]

    def test_grid_uses_twenty_divisions(self):
        song = _evaluate("add_action(0.0, 0, bomb(grid()))", seed=0)
        p = song.actions[0].cmd.pos.pos
        assert (p.x + 50) % 5 == pytest.approx(2.5)


class TestErrors:
    def test_syntax_error_has_line(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("set_bpm(120)\nadd_action(\n")
        assert excinfo.value.path == "score.py"
        assert excinfo.value.line is not None

    def test_runtime_error_has_line(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("set_bpm(120)\n\nundefined_helper()\n")
        assert excinfo.value.line == 3
        assert "NameError" in excinfo.value.message

    def test_host_error_gets_path(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("set_bpm(-1)")
        assert excinfo.value.path == "score.py"
        assert excinfo.value.key == "bpm"

    def test_bad_spawn_cmd(self):
        with pytest.raises(ScriptError):
            _evaluate("add_action(beat_action(1.0, 0, 'bullet'))")

    def test_invalid_splitter_propagates(self):
        from beat_barrage.errors import InvalidConfiguration

        with pytest.raises(InvalidConfiguration):
            _evaluate("make_actions(beat_splitter(0.0, 0.0), lambda b: clear_enemies())")

    def test_songmap_with_bad_actions(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("SONGMAP = {'actions': 5}")
        assert excinfo.value.key == "actions"
        assert excinfo.value.path == "score.py"

    def test_non_finite_skip(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("set_skip_amount(float('nan'))")
        assert excinfo.value.key == "skip"
        assert excinfo.value.line == 1


class TestMidiInScores:
    def test_parse_midi_relative_to_asset_root(self, tmp_path):
        _write_kick(tmp_path / "kick.mid")
        song = _evaluate(
            """
            kicks = parse_midi("kick.mid").offset(80.0)
            make_actions(kicks, lambda b: bullet(pos(0, 50), player()))
            """,
            asset_root=str(tmp_path),
        )
        assert [float(a.nominal_beat) for a in song.actions] == [80.0, 81.0, 82.0, 83.0]

    def test_parse_midi_grouped(self, tmp_path):
        _write_kick(tmp_path / "kick.mid")
        song = _evaluate(
            """
            for run in parse_midi_grouped("kick.mid"):
                add_action(run.get_beat(0), run[0].group_len, clear_enemies())
            """,
            asset_root=str(tmp_path),
        )
        assert [a.group for a in song.actions] == [2, 1, 1]

    def test_missing_midi(self, tmp_path):
        with pytest.raises(AssetNotFound):
            _evaluate('parse_midi("missing.mid")', asset_root=str(tmp_path))

    def test_malformed_midi_names_file(self, tmp_path):
        (tmp_path / "bad.mid").write_bytes(b"garbage")
        with pytest.raises(MalformedMidi, match="bad.mid"):
            _evaluate('parse_midi("bad.mid")', asset_root=str(tmp_path))


class TestLoader:
    def test_python_score(self, tmp_path):
        (tmp_path / "level.py").write_text("set_bpm(140)\nadd_action(4.0, 0, clear_enemies())\n")
        song = load_song_map(tmp_path / "level.py")
        assert song.bpm == 140.0
        assert len(song.actions) == 1

    def test_evaluate_score_helper(self, tmp_path):
        (tmp_path / "level.py").write_text("set_bpm(141)\n")
        assert evaluate_score(tmp_path / "level.py").bpm == 141.0

    def test_json_score(self, tmp_path):
        path = tmp_path / "level.json"
        path.write_text(json.dumps({
            "bpm": 120,
            "actions": [{"beat": 8, "spawn_cmd": "laser", "position": "origin", "angle": 0}],
        }))
        song = load_song_map(path)
        assert song.bpm == 120.0
        assert song.actions[0].delivery_beat == 4.0

    def test_yaml_score(self, tmp_path):
        path = tmp_path / "level.yaml"
        path.write_text(textwrap.dedent("""
            - bpm: 160
            - skip: 4
            - beat: 8
              spawn_cmd: bullet
              start_pos: topleft
              end_pos: {offset_from: [0, -5]}
        """))
        song = load_song_map(path)
        assert song.bpm == 160.0
        assert song.skip_amount == 4.0
        assert song.actions[0].cmd.end == OffsetFromPlayer(ConstantPos(WorldPos(0, -5)))

    def test_invalid_json_has_line(self, tmp_path):
        path = tmp_path / "level.json"
        path.write_text('{\n  "bpm": ,\n}')
        with pytest.raises(ScriptError) as excinfo:
            load_song_map(path)
        assert excinfo.value.line == 2

    def test_bad_data_names_file(self, tmp_path):
        path = tmp_path / "level.json"
        path.write_text(json.dumps([{"beat": 1, "spawn_cmd": "bomb"}]))
        with pytest.raises(ScriptError, match="level.json"):
            load_song_map(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "level.txt"
        path.write_text("")
        with pytest.raises(ScriptError, match="Unsupported"):
            load_song_map(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AssetNotFound):
            load_song_map(tmp_path / "nope.py")

    def test_loaded_score_drives_scheduler(self, tmp_path):
        (tmp_path / "level.py").write_text(textwrap.dedent("""
            make_actions(beat_splitter(0.0, 4.0), lambda b: bullet(pos(0, 50), player()))
            add_action(8.0, 0, clear_enemies())
        """))
        song = load_song_map(tmp_path / "level.py")
        scheduler = Scheduler.from_song_map(song)
        world = SimpleWorld()
        scheduler.update(4.0, world, WorldPos(1, 1))
        assert len(world.enemies) == 2
        scheduler.update(8.0, world, WorldPos(1, 1))
        assert world.enemies == []
        scheduler.update(16.0, world, WorldPos(1, 1))
        assert len(world.enemies) == 2




class TestScoreBuiltins:
    def test_import_blocked(self):
        with pytest.raises(ScriptError) as excinfo:
            _evaluate("set_bpm(120)\nimport os\n")
        assert excinfo.value.line == 2
        assert "ImportError" in excinfo.value.message

    @pytest.mark.parametrize("name", ["open", "eval", "exec", "compile", "__import__"])
    def test_escape_hatches_missing(self, name):
        with pytest.raises(ScriptError, match="NameError"):
            _evaluate(f"{name}('x')")

    def test_plain_builtins_available(self):
        song = _evaluate("""
            beats = sorted(range(4), reverse=True)
            for b in beats[:len(beats) - 1]:
                add_action(beat_action(float(b), 0, clear_enemies()))
        """)
        assert sorted(float(a.delivery_beat) for a in song.actions) == [1.0, 2.0, 3.0]
