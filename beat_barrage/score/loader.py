"""Top-level entry point: load any score file into a SongMap."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from beat_barrage.config import EngineConfig
from beat_barrage.errors import ScriptError
from beat_barrage.parsers.asset_loader import AssetLoader
from beat_barrage.schemas.score_data import coerce_song_map
from beat_barrage.schemas.song_map import SongMap
from beat_barrage.score.evaluator import ScoreEvaluator

logger = logging.getLogger(__name__)


def _load_script(path: Path, config: EngineConfig) -> SongMap:
    return ScoreEvaluator(config, AssetLoader(config.asset_root)).evaluate_file(path)


def _load_json(path: Path, config: EngineConfig) -> SongMap:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ScriptError(f"Invalid JSON: {exc.msg}", path=str(path), line=exc.lineno) from exc
    return _coerce(data, path, config)


def _load_yaml(path: Path, config: EngineConfig) -> SongMap:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise ScriptError(f"Invalid YAML: {exc}", path=str(path), line=line) from exc
    return _coerce(data, path, config)


def _coerce(data, path: Path, config: EngineConfig) -> SongMap:
    try:
        return coerce_song_map(data, base=SongMap(bpm=config.default_bpm))
    except ScriptError as exc:
        raise ScriptError(exc.message, path=str(path), key=exc.key) from exc


_LOADERS = {
    ".py": _load_script,
    ".json": _load_json,
    ".yaml": _load_yaml,
    ".yml": _load_yaml,
}


def load_song_map(path: Path | str, config: EngineConfig | None = None) -> SongMap:
    """Load a scripted (``.py``) or data (``.json``/``.yaml``) score.

    Raises:
        AssetNotFound: If the score file does not exist.
        ScriptError: If the score fails to evaluate or its data is invalid,
            or the file kind is not recognised.
    """
    config = config or EngineConfig()
    resolved = AssetLoader(config.asset_root).resolve(path)
    loader = _LOADERS.get(resolved.suffix.lower())
    if loader is None:
        raise ScriptError(f"Unsupported score file type {resolved.suffix!r}", path=str(resolved))

    song_map = loader(resolved, config)
    logger.info("Loaded %s: %d actions at %.1f BPM", resolved.name, len(song_map.actions), song_map.bpm)
    return song_map
