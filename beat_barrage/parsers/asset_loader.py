"""Read named resources (MIDI files, scores) relative to an asset root."""

import logging
from pathlib import Path

from beat_barrage.errors import AssetNotFound

logger = logging.getLogger(__name__)


class AssetLoader:
    """Resolves asset paths against ``root`` and returns their bytes.

    Absolute paths are used as-is. Relative paths are tried against ``root``
    first and then against the current directory.
    """

    def __init__(self, root: Path | str = "."):
        self.root = Path(root)

    def resolve(self, path: Path | str) -> Path:
        path = Path(path)
        candidates = [path] if path.is_absolute() else [self.root / path, path]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise AssetNotFound(f"Asset not found: {path} (root: {self.root})")

    def open(self, path: Path | str) -> bytes:
        resolved = self.resolve(path)
        logger.debug("Loading asset %s", resolved)
        return resolved.read_bytes()

    def read_text(self, path: Path | str) -> str:
        return self.open(path).decode("utf-8")
