"""Coerce plain score data (dicts, lists, numbers, strings) into a SongMap.

This is the format data scores (JSON/YAML) use, and what a scripted score may
bind to ``SONGMAP`` instead of calling the host functions. Accepted shapes:

* ``{"bpm": 150, "skip": 160, "actions": [...]}``
* ``[{"bpm": 150}, {"skip": 160}, {action}, {action}, ...]``

Each action is a table with ``beat``, optional ``enemygroup`` (default 0),
a ``spawn_cmd`` tag and the tag's own fields.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

from beat_barrage.errors import BarrageError, ScriptError
from beat_barrage.schemas.positions import (
    Color,
    ConstantPos,
    LiveWorldPos,
    OffsetFromPlayer,
    PlayerPos,
    WorldPos,
)
from beat_barrage.schemas.song_map import BeatAction, SongMap
from beat_barrage.schemas.spawn import (
    DEFAULT_LASER_DURATIONS,
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
    SpawnCmd,
    is_spawn_cmd,
)
from beat_barrage.schemas.units import Beats

logger = logging.getLogger(__name__)

NAMED_POSITIONS = {
    "origin": WorldPos(0.0, 0.0),
    "topleft": WorldPos(-50.0, 50.0),
    "topright": WorldPos(50.0, 50.0),
    "botleft": WorldPos(-50.0, -50.0),
    "botright": WorldPos(50.0, -50.0),
}

_LIVE_TYPES = (ConstantPos, PlayerPos, OffsetFromPlayer)


def _number(value, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ScriptError(f"Expected a number, got {value!r}", key=key)
    return float(value)


def _finite(value, key: str) -> float:
    number = _number(value, key)
    if not math.isfinite(number):
        raise ScriptError(f"Expected a finite number, got {number!r}", key=key)
    return number


def _group(value, key: str = "enemygroup") -> int:
    number = _finite(value, key)
    if not number.is_integer():
        raise ScriptError(f"Expected a whole number, got {number!r}", key=key)
    return int(number)


def _bool(value, key: str) -> bool:
    if not isinstance(value, bool):
        raise ScriptError(f"Expected true/false, got {value!r}", key=key)
    return value


def _require(table: Mapping, key: str):
    if key not in table or table[key] is None:
        raise ScriptError("Missing required field", key=key)
    return table[key]


def parse_position(value, key: str = "pos") -> LiveWorldPos:
    """Coerce a position value into a LiveWorldPos.

    Accepts LiveWorldPos/WorldPos objects, ``"player"``, a named position,
    ``{"x": .., "y": ..}``, ``[x, y]`` and ``{"offset_from": <position>}``.
    """
    if isinstance(value, _LIVE_TYPES):
        return value
    if isinstance(value, WorldPos):
        return ConstantPos(value)
    if isinstance(value, str):
        name = value.lower()
        if name == "player":
            return PlayerPos()
        if name in NAMED_POSITIONS:
            return ConstantPos(NAMED_POSITIONS[name])
        raise ScriptError(f"Unknown position name {value!r}", key=key)
    if isinstance(value, Mapping):
        if "offset_from" in value:
            return OffsetFromPlayer(parse_position(value["offset_from"], key))
        if "x" in value and "y" in value:
            return ConstantPos(WorldPos(_number(value["x"], key), _number(value["y"], key)))
    elif isinstance(value, Sequence) and len(value) == 2:
        return ConstantPos(WorldPos(_number(value[0], key), _number(value[1], key)))
    raise ScriptError(f"Cannot interpret {value!r} as a position", key=key)


def parse_durations(value, key: str = "durations") -> LaserDurations:
    if value is None:
        return DEFAULT_LASER_DURATIONS
    if isinstance(value, LaserDurations):
        return value
    if isinstance(value, Mapping):
        return LaserDurations(
            warmup=_number(value.get("warmup", DEFAULT_LASER_DURATIONS.warmup), key),
            active=_number(value.get("active", DEFAULT_LASER_DURATIONS.active), key),
            cooldown=_number(value.get("cooldown", DEFAULT_LASER_DURATIONS.cooldown), key),
        )
    if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 3:
        return LaserDurations(*(_number(v, key) for v in value))
    raise ScriptError(f"Cannot interpret {value!r} as laser durations", key=key)


def parse_color(value, key: str = "color") -> Color:
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        try:
            return Color.named(value)
        except ValueError as exc:
            raise ScriptError(str(exc), key=key) from exc
    if isinstance(value, Mapping):
        return Color(
            _number(_require(value, "r"), key),
            _number(_require(value, "g"), key),
            _number(_require(value, "b"), key),
            _number(value.get("a", 1.0), key),
        )
    if isinstance(value, Sequence) and len(value) in (3, 4):
        return Color(*(_number(v, key) for v in value))
    raise ScriptError(f"Cannot interpret {value!r} as a color", key=key)


def _parse_bullet(t: Mapping) -> SpawnCmd:
    return Bullet(
        start=parse_position(_require(t, "start_pos"), "start_pos"),
        end=parse_position(_require(t, "end_pos"), "end_pos"),
    )


def _parse_laser(t: Mapping) -> SpawnCmd:
    durations = parse_durations(t.get("durations"))
    if "a" in t or "b" in t:
        return LaserThruPoints(
            a=parse_position(_require(t, "a"), "a"),
            b=parse_position(_require(t, "b"), "b"),
            durations=durations,
        )
    return Laser(
        position=parse_position(_require(t, "position"), "position"),
        angle=_number(_require(t, "angle"), "angle"),
        durations=durations,
    )


def _parse_bomb(t: Mapping) -> SpawnCmd:
    return CircleBomb(pos=parse_position(_require(t, "pos"), "pos"))


def _parse_rotation_on(t: Mapping) -> SpawnCmd:
    return SetGroupRotation(RotationSpec(
        start_angle=_number(_require(t, "start_angle"), "start_angle"),
        end_angle=_number(_require(t, "end_angle"), "end_angle"),
        duration=_number(_require(t, "duration"), "duration"),
        pivot=parse_position(t.get("rot_point", "origin"), "rot_point"),
    ))


def _parse_fadeout_on(t: Mapping) -> SpawnCmd:
    return SetFadeOut(FadeOutSpec(
        color=parse_color(t.get("color", "transparent")),
        duration=_number(_require(t, "duration"), "duration"),
    ))


_CMD_PARSERS = {
    "bullet": _parse_bullet,
    "laser": _parse_laser,
    "bomb": _parse_bomb,
    "set_rotation_on": _parse_rotation_on,
    "set_rotation_off": lambda t: SetGroupRotation(None),
    "set_fadeout_on": _parse_fadeout_on,
    "set_fadeout_off": lambda t: SetFadeOut(None),
    "set_hitbox": lambda t: SetHitbox(_bool(_require(t, "value"), "value")),
    "set_render": lambda t: SetRender(_bool(_require(t, "value"), "value")),
    "show_warmup": lambda t: ShowWarmup(_bool(_require(t, "value"), "value")),
    "set_render_warmup": lambda t: ShowWarmup(_bool(_require(t, "value"), "value")),
    "clear_enemies": lambda t: ClearEnemies(),
}


_ACTION_KEYS = {"beat", "enemygroup", "spawn_cmd"}
_CMD_KEYS = {
    "bullet": {"start_pos", "end_pos"},
    "laser": {"position", "angle", "a", "b", "durations"},
    "bomb": {"pos"},
    "set_rotation_on": {"start_angle", "end_angle", "duration", "rot_point"},
    "set_fadeout_on": {"color", "duration"},
    "set_hitbox": {"value"},
    "set_render": {"value"},
    "show_warmup": {"value"},
    "set_render_warmup": {"value"},
}


def parse_spawn_cmd(table: Mapping) -> SpawnCmd:
    """Build a SpawnCmd from a table with a ``spawn_cmd`` tag."""
    tag = _require(table, "spawn_cmd")
    if is_spawn_cmd(tag):
        return tag
    parser = _CMD_PARSERS.get(tag) if isinstance(tag, str) else None
    if parser is None:
        raise ScriptError(f"Unknown spawn_cmd {tag!r}", key="spawn_cmd")
    unknown = set(table) - _ACTION_KEYS - _CMD_KEYS.get(tag, set())
    if unknown:
        logger.warning("Ignoring unknown keys for %s: %s", tag, ", ".join(sorted(map(str, unknown))))
    return parser(table)


def parse_action(table: Mapping) -> BeatAction:
    beat = _finite(_require(table, "beat"), "beat")
    group = _group(table.get("enemygroup", 0))
    return BeatAction.new(beat, parse_spawn_cmd(table), group)


def _apply_entry(song_map: SongMap, entry, index: int) -> None:
    if isinstance(entry, BeatAction):
        song_map.add_action(entry)
        return
    if not isinstance(entry, Mapping):
        raise ScriptError(f"Entry {index} is not a table: {entry!r}")
    if "spawn_cmd" in entry:
        song_map.add_action(parse_action(entry))
        return
    if "bpm" in entry:
        bpm = _finite(entry["bpm"], "bpm")
        if bpm <= 0:
            raise ScriptError(f"BPM must be positive, got {bpm}", key="bpm")
        song_map.bpm = bpm
    if "skip" in entry:
        song_map.skip_amount = Beats(_finite(entry["skip"], "skip"))
    if "bpm" not in entry and "skip" not in entry:
        raise ScriptError(f"Entry {index} has no spawn_cmd, bpm or skip", key="spawn_cmd")


def coerce_song_map(value, base: SongMap | None = None) -> SongMap:
    """Turn plain score data into a SongMap.

    Args:
        value: A SongMap (returned as-is), a mapping with ``bpm``/``skip``/
            ``actions``, or a list of setting and action tables.
        base: SongMap to fill in; a fresh default one when omitted.

    Raises:
        ScriptError: On an unknown spawn_cmd tag, a missing required field or
            a value of the wrong type. The message names the entry index.
    """
    if isinstance(value, SongMap):
        return value
    song_map = base if base is not None else SongMap()

    if isinstance(value, Mapping):
        actions = value.get("actions", [])
        if not isinstance(actions, Sequence) or isinstance(actions, str):
            raise ScriptError(f"actions must be a list, got {type(actions).__name__}", key="actions")
        entries = list(actions)
        header = {k: value[k] for k in ("bpm", "skip") if k in value}
        if header:
            entries.insert(0, header)
    elif isinstance(value, Sequence) and not isinstance(value, str):
        entries = list(value)
    else:
        raise ScriptError(f"Score must evaluate to a table or list, got {type(value).__name__}")

    for index, entry in enumerate(entries):
        try:
            _apply_entry(song_map, entry, index)
        except ScriptError as exc:
            raise ScriptError(f"entry {index}: {exc.message}", key=exc.key) from exc
        except BarrageError as exc:
            raise ScriptError(f"entry {index}: {exc}") from exc

    logger.debug("Coerced %d entries into %d actions", len(entries), len(song_map.actions))
    return song_map
