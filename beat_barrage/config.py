"""Engine configuration: load-time knobs in one dataclass."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path


@dataclass
class EngineConfig:
    """Settings used while loading and simulating a score."""

    # Randomness (grid(), random(), RandomGrid batches). None = fresh entropy.
    seed: int | None = None

    # Where relative MIDI/score paths are resolved
    asset_root: str = "."

    # Score defaults
    default_bpm: float = 150.0
    default_split_duration: float = 16.0  # beats, 4 measures
    grid_divisions: int = 20

    # Simulation
    simulate_step: float = 0.25  # beats per simulated frame

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> EngineConfig:
        """Load config from JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        # Only pass known fields to handle forward/backward compat
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
