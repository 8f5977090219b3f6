"""Evaluate scripted scores into a SongMap.

A score script is Python source run in a namespace that holds the host
vocabulary below and nothing else worth importing. Scripts either call
``add_action``/``make_actions`` on the implicit map, or bind ``SONGMAP`` to a
SongMap or to plain score data (see ``schemas.score_data``).

Example::

    set_bpm(150.0)
    set_skip_amount(0.0)

    every2 = beat_splitter(32.0, 2.0)
    make_actions(every2, bullet_batch(lerped(TOPLEFT, BOTLEFT), lerped(ORIGIN, ORIGIN)))

    kicks = parse_midi("kick.mid").offset(80.0)
    make_actions(kicks, lambda b: laser_angle(ORIGIN, 360.0 * b.percent))

All randomness comes from one numpy Generator seeded from the engine config
when evaluation starts, so a given seed always yields the same SongMap.
"""

from __future__ import annotations

import builtins
import logging
import math
import traceback
from collections.abc import Iterable, Mapping
from pathlib import Path

import numpy as np

from beat_barrage.config import EngineConfig
from beat_barrage.errors import BarrageError, InvalidBeat, ScriptError
from beat_barrage.parsers.asset_loader import AssetLoader
from beat_barrage.parsers.marked_beats import MarkedBeat, MarkedBeats
from beat_barrage.parsers.midi_parser import parse_midi, parse_midi_grouped
from beat_barrage.patterns.batch import BulletBatch, CircleBombBatch, LaserBatch
from beat_barrage.patterns.splitter import BeatSplitter
from beat_barrage.schemas.positions import (
    Color,
    ConstantBatchPos,
    LerpedPos,
    OffsetFromPlayer,
    PlayerPos,
    RandomGridPos,
    WorldPos,
    as_live,
    random_grid,
)
from beat_barrage.schemas.score_data import (
    NAMED_POSITIONS,
    coerce_song_map,
    parse_action,
    parse_color,
    parse_position,
)
from beat_barrage.schemas.song_map import BeatAction, SongMap
from beat_barrage.schemas.spawn import (
    BOMB_WARMUP,
    DEFAULT_LASER_DURATIONS,
    LASER_WARMUP,
    Bullet,
    CircleBomb,
    ClearEnemies,
    FadeOutSpec,
    Laser,
    LaserDurations,
    LaserThruPoints,
    RotationSpec,
    SetFadeOut,
    SetGroupRotation,
    SetHitbox,
    SetRender,
    ShowWarmup,
    is_spawn_cmd,
)
from beat_barrage.schemas.units import ensure_finite

logger = logging.getLogger(__name__)

BULLET_TRAVEL = 100.0  # world units covered by angle-built bullets

# No __import__, open, exec or eval: scores only see the host vocabulary.
_SCORE_BUILTINS = {
    name: getattr(builtins, name)
    for name in (
        "__build_class__", "abs", "all", "any", "bool", "dict", "divmod",
        "enumerate", "filter", "float", "frozenset", "int", "isinstance",
        "iter", "len", "list", "map", "max", "min", "next", "pow", "print",
        "range", "reversed", "round", "set", "sorted", "str", "sum", "tuple",
        "zip", "Exception", "ArithmeticError", "IndexError", "KeyError",
        "TypeError", "ValueError", "ZeroDivisionError",
    )
}


def _pos_arg(value):
    """Host functions take WorldPos, (x, y), LiveWorldPos or data positions."""
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return as_live(value)
    return parse_position(value)


def _world_pos(value) -> WorldPos:
    if isinstance(value, WorldPos):
        return value
    live = _pos_arg(value)
    if isinstance(live, PlayerPos) or isinstance(live, OffsetFromPlayer):
        raise ScriptError(f"Expected a fixed position, got {value!r}")
    return live.pos


class ScoreEvaluator:
    """Runs score scripts and collects the resulting SongMap.

    One evaluator can run several scores; every call to ``evaluate`` starts
    from a fresh map, group 0 and a freshly seeded RNG.
    """

    def __init__(self, config: EngineConfig | None = None, loader: AssetLoader | None = None):
        self.config = config or EngineConfig()
        self.loader = loader or AssetLoader(self.config.asset_root)
        self._reset()

    def _reset(self) -> None:
        self.song_map = self.default_map()
        self.curr_group = 0
        self.rng = np.random.default_rng(self.config.seed)

    # --- running scores ---------------------------------------------------

    def evaluate_file(self, path: Path | str) -> SongMap:
        resolved = self.loader.resolve(path)
        return self.evaluate(resolved.read_text(encoding="utf-8"), str(resolved))

    def evaluate(self, source: str, path: str = "<score>") -> SongMap:
        """Run ``source`` and return the SongMap it describes.

        Raises:
            ScriptError: For syntax errors, bad arguments or bad score data,
                with the score path and line where known.
            MalformedMidi, AssetNotFound, InvalidConfiguration, InvalidBeat:
                Propagated unchanged from the host functions.
        """
        self._reset()
        namespace = self.namespace()
        try:
            code = compile(source, path, "exec")
        except SyntaxError as exc:
            raise ScriptError(f"Syntax error: {exc.msg}", path=path, line=exc.lineno) from exc

        try:
            exec(code, namespace)
        except ScriptError as exc:
            if exc.path is None:
                raise ScriptError(exc.message, path=path,
                                  line=exc.line or _script_line(exc, path), key=exc.key) from exc
            raise
        except BarrageError:
            raise
        except Exception as exc:
            raise ScriptError(f"{type(exc).__name__}: {exc}", path=path,
                              line=_script_line(exc, path)) from exc

        song_map = self.song_map
        if "SONGMAP" in namespace:
            try:
                song_map = coerce_song_map(namespace["SONGMAP"], base=self.default_map())
            except ScriptError as exc:
                raise ScriptError(exc.message, path=path, key=exc.key) from exc

        logger.info(
            "Evaluated %s: bpm=%.1f skip=%.1f actions=%d",
            path, song_map.bpm, song_map.skip_amount, len(song_map.actions),
        )
        return song_map

    def namespace(self) -> dict:
        """The globals a score script runs with."""
        ns = {
            "__name__": "__score__",
            "__builtins__": dict(_SCORE_BUILTINS),
            # map
            "default_map": self.default_map,
            "set_bpm": self.set_bpm,
            "set_skip_amount": self.set_skip_amount,
            "add_action": self.add_action,
            "add_actions": self.add_actions,
            "make_actions": self.make_actions,
            "fadeout_clear": self.fadeout_clear,
            "beat_action": self.beat_action,
            "set_curr_group": self.set_curr_group,
            "get_curr_group": self.get_curr_group,
            # timing
            "parse_midi": self.parse_midi,
            "parse_midi_grouped": self.parse_midi_grouped,
            "beat_splitter": self.beat_splitter,
            # positions
            "pos": self.pos,
            "origin": self.origin,
            "player": self.player,
            "offset_player": self.offset_player,
            "lerp_pos": self.lerp_pos,
            "circle": self.circle,
            "grid": self.grid,
            "random": self.random,
            "color": self.color,
            # batch templates
            "lerped": self.lerped,
            "random_grid_pos": self.random_grid_pos,
            "batch_pos": self.batch_pos,
            "bullet_batch": BulletBatch,
            "laser_batch": LaserBatch,
            "bomb_batch": CircleBombBatch,
            # spawn commands
            "durations": self.durations,
            "default_laser_duration": self.default_laser_duration,
            "bullet": self.bullet,
            "bullet_angle_start": self.bullet_angle_start,
            "bullet_angle_end": self.bullet_angle_end,
            "laser": self.laser,
            "laser_angle": self.laser_angle,
            "bomb": self.bomb,
            "set_fadeout_on": self.set_fadeout_on,
            "set_fadeout_off": self.set_fadeout_off,
            "set_rotation_on": self.set_rotation_on,
            "set_rotation_off": self.set_rotation_off,
            "set_use_hitbox": self.set_use_hitbox,
            "set_render_warmup": self.set_render_warmup,
            "set_render": self.set_render,
            "clear_enemies": self.clear_enemies,
            # constants
            "LASER_WARMUP": float(LASER_WARMUP),
            "BOMB_WARMUP": float(BOMB_WARMUP),
            "math": math,
        }
        for name, position in NAMED_POSITIONS.items():
            ns[name.upper()] = position
        return ns

    # --- map --------------------------------------------------------------

    def default_map(self) -> SongMap:
        return SongMap(bpm=self.config.default_bpm)

    def set_bpm(self, bpm: float) -> None:
        bpm = float(bpm)
        if not math.isfinite(bpm) or bpm <= 0:
            raise ScriptError(f"BPM must be a positive number, got {bpm}", key="bpm")
        self.song_map.bpm = bpm

    def set_skip_amount(self, beats: float) -> None:
        try:
            self.song_map.skip_amount = ensure_finite(float(beats), "skip amount")
        except InvalidBeat as exc:
            raise ScriptError(str(exc), key="skip") from exc

    def beat_action(self, beat: float, group: int, cmd) -> BeatAction:
        if not is_spawn_cmd(cmd):
            raise ScriptError(f"Expected a spawn command, got {cmd!r}", key="spawn_cmd")
        return BeatAction.new(beat, cmd, group)

    def add_action(self, action, group: int | None = None, cmd=None) -> None:
        """``add_action(beat_action)`` or ``add_action(beat, group, cmd)``."""
        if not isinstance(action, BeatAction):
            group = self.curr_group if group is None else group
            action = self.beat_action(action, group, cmd)
        self.song_map.add_action(action)

    def add_actions(self, actions: Iterable[BeatAction]) -> None:
        for action in actions:
            self.add_action(action)

    def set_curr_group(self, group: int) -> None:
        self.curr_group = int(group)

    def get_curr_group(self) -> int:
        return self.curr_group

    def make_actions(self, beats, spawner) -> list[BeatAction]:
        """Add actions for every marked beat in ``beats``.

        ``beats`` may be a BeatSplitter, MarkedBeats, or a list of MarkedBeats
        (grouped MIDI). ``spawner`` is either a batch template (evaluated at
        each beat's percent) or a function of the MarkedBeat returning a spawn
        command, a BeatAction, a data table, a list of those, or None.
        Returned BeatActions and tables that carry their own ``beat`` or
        ``enemygroup`` keep them; everything else gets the marked beat and the
        current group.

        Returns:
            The actions that were added.
        """
        added: list[BeatAction] = []
        for marked in _iter_marked(beats):
            if hasattr(spawner, "at") and not callable(spawner):
                results = spawner.at(marked.percent, self.rng)
            else:
                results = spawner(marked)
            for result in _as_list(results):
                action = self._to_action(result, marked)
                self.song_map.add_action(action)
                added.append(action)
        return added

    def _to_action(self, result, marked: MarkedBeat) -> BeatAction:
        if isinstance(result, BeatAction):
            return result
        if is_spawn_cmd(result):
            return BeatAction.new(marked.beat, result, self.curr_group)
        if isinstance(result, Mapping):
            table = {"beat": float(marked.beat), "enemygroup": self.curr_group, **result}
            return parse_action(table)
        raise ScriptError(f"Spawner returned {result!r}, expected a spawn command", key="spawn_cmd")

    def fadeout_clear(self, beat: float, group: int, duration: float) -> None:
        """Fade a group out and disable its hitboxes, then clear enemies.

        Anything the group spawns during the fade is cleared too.
        """
        self.add_action(beat, group, self.set_fadeout_on("transparent", duration))
        self.add_action(beat, group, self.set_use_hitbox(False))
        end = beat + duration
        self.add_action(end, group, self.set_fadeout_off())
        self.add_action(end, group, self.set_use_hitbox(True))
        self.add_action(end, group, self.clear_enemies())

    # --- timing -----------------------------------------------------------

    def parse_midi(self, path: str, bpm: float | None = None) -> MarkedBeats:
        bpm = self.song_map.bpm if bpm is None else float(bpm)
        return parse_midi(self.loader.open(path), bpm, source=str(path))

    def parse_midi_grouped(self, path: str, bpm: float | None = None) -> list[MarkedBeats]:
        bpm = self.song_map.bpm if bpm is None else float(bpm)
        return parse_midi_grouped(self.loader.open(path), bpm, source=str(path))

    def beat_splitter(self, start: float, frequency: float) -> BeatSplitter:
        return BeatSplitter(
            start=float(start),
            duration=self.config.default_split_duration,
            frequency=float(frequency),
        )

    # --- positions --------------------------------------------------------

    def pos(self, x: float, y: float) -> WorldPos:
        return WorldPos(float(x), float(y))

    def origin(self) -> WorldPos:
        return WorldPos.origin()

    def player(self) -> PlayerPos:
        return PlayerPos()

    def offset_player(self, offset) -> OffsetFromPlayer:
        return OffsetFromPlayer(_pos_arg(offset))

    def lerp_pos(self, a, b, t: float) -> WorldPos:
        return _world_pos(a).lerp(_world_pos(b), float(t))

    def circle(self, cx: float, cy: float, radius: float, angle: float) -> WorldPos:
        """Point on a circle; ``angle`` is in degrees, counter-clockwise from +x."""
        rad = math.radians(angle)
        return WorldPos(cx + math.cos(rad) * radius, cy + math.sin(rad) * radius)

    def grid(self) -> WorldPos:
        return random_grid(self.rng, self.config.grid_divisions)

    def random(self, low: float, high: float) -> float:
        return float(self.rng.uniform(low, high))

    def color(self, r: float, g: float, b: float, a: float = 1.0) -> Color:
        return Color(float(r), float(g), float(b), float(a))

    def lerped(self, a, b) -> LerpedPos:
        return LerpedPos(_world_pos(a), _world_pos(b))

    def random_grid_pos(self) -> RandomGridPos:
        return RandomGridPos()

    def batch_pos(self, position) -> ConstantBatchPos:
        return ConstantBatchPos(_pos_arg(position))

    # --- spawn commands ---------------------------------------------------

    def durations(self, warmup: float, active: float, cooldown: float) -> LaserDurations:
        return LaserDurations(float(warmup), float(active), float(cooldown))

    def default_laser_duration(self) -> LaserDurations:
        return DEFAULT_LASER_DURATIONS

    def bullet(self, start, end) -> Bullet:
        return Bullet(start=_pos_arg(start), end=_pos_arg(end))

    def bullet_angle_start(self, start, angle: float, length: float = BULLET_TRAVEL) -> Bullet:
        """Bullet leaving ``start`` towards ``angle`` degrees."""
        live = _pos_arg(start)
        rad = math.radians(angle)
        return Bullet(start=live, end=live.shifted(math.cos(rad) * length, math.sin(rad) * length))

    def bullet_angle_end(self, end, angle: float, length: float = BULLET_TRAVEL) -> Bullet:
        """Bullet arriving at ``end`` while travelling towards ``angle`` degrees."""
        live = _pos_arg(end)
        rad = math.radians(angle)
        return Bullet(start=live.shifted(-math.cos(rad) * length, -math.sin(rad) * length), end=live)

    def laser(self, a, b, durations: LaserDurations | None = None) -> LaserThruPoints:
        return LaserThruPoints(a=_pos_arg(a), b=_pos_arg(b),
                               durations=durations or DEFAULT_LASER_DURATIONS)

    def laser_angle(self, position, angle: float, durations: LaserDurations | None = None) -> Laser:
        return Laser(position=_pos_arg(position), angle=float(angle),
                     durations=durations or DEFAULT_LASER_DURATIONS)

    def bomb(self, position) -> CircleBomb:
        return CircleBomb(pos=_pos_arg(position))

    def set_fadeout_on(self, color, duration: float) -> SetFadeOut:
        return SetFadeOut(FadeOutSpec(color=parse_color(color), duration=float(duration)))

    def set_fadeout_off(self) -> SetFadeOut:
        return SetFadeOut(None)

    def set_rotation_on(self, start_angle: float, end_angle: float, duration: float,
                        pivot=None) -> SetGroupRotation:
        pivot = WorldPos.origin() if pivot is None else pivot
        return SetGroupRotation(RotationSpec(
            start_angle=float(start_angle),
            end_angle=float(end_angle),
            duration=float(duration),
            pivot=_pos_arg(pivot),
        ))

    def set_rotation_off(self) -> SetGroupRotation:
        return SetGroupRotation(None)

    def set_use_hitbox(self, value: bool) -> SetHitbox:
        return SetHitbox(bool(value))

    def set_render_warmup(self, value: bool) -> ShowWarmup:
        return ShowWarmup(bool(value))

    def set_render(self, value: bool) -> SetRender:
        return SetRender(bool(value))

    def clear_enemies(self) -> ClearEnemies:
        return ClearEnemies()


def _iter_marked(beats) -> Iterable[MarkedBeat]:
    for item in beats:
        if isinstance(item, MarkedBeat):
            yield item
        elif isinstance(item, MarkedBeats):
            yield from item
        else:
            raise ScriptError(f"make_actions expects marked beats, got {item!r}")


def _as_list(results) -> list:
    if results is None:
        return []
    if isinstance(results, (list, tuple)):
        return list(results)
    return [results]


def _script_line(exc: BaseException, path: str) -> int | None:
    """Innermost traceback line that belongs to the score itself."""
    line = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == path:
            line = frame.lineno
    return line


def evaluate_score(path: Path | str, config: EngineConfig | None = None) -> SongMap:
    """Evaluate a score script file with a fresh evaluator."""
    return ScoreEvaluator(config).evaluate_file(path)
