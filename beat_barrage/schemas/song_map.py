"""BeatAction and SongMap: the evaluated, queue-ready form of a score."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from beat_barrage.errors import InvalidConfiguration
from beat_barrage.schemas.spawn import SpawnCmd, is_spawn_cmd, warmup_for
from beat_barrage.schemas.units import Beats, ensure_finite

DEFAULT_BPM = 150.0


@dataclass(frozen=True, order=True)
class BeatAction:
    """A spawn command scheduled for delivery at ``delivery_beat``.

    Ordering and equality only look at ``delivery_beat``. Build instances
    with ``BeatAction.new`` so the command's warmup is applied.
    """

    delivery_beat: Beats
    cmd: SpawnCmd = field(compare=False)
    group: int = field(default=0, compare=False)
    nominal_beat: Beats | None = field(default=None, compare=False)

    def __post_init__(self):
        if not is_spawn_cmd(self.cmd):
            raise InvalidConfiguration(f"BeatAction needs a spawn command, got {self.cmd!r}")

    @classmethod
    def new(cls, beat: float, cmd: SpawnCmd, group: int = 0) -> BeatAction:
        """Schedule ``cmd`` so that it takes effect on ``beat``.

        Commands with a warmup (lasers, bombs) are delivered early by that
        warmup: a laser meant to fire on beat 20 with a 4 beat warmup is
        delivered on beat 16.

        Raises:
            InvalidConfiguration: If ``cmd`` is not a spawn command.
            InvalidBeat: If ``beat`` or the delivery beat is not finite.
        """
        if not is_spawn_cmd(cmd):
            raise InvalidConfiguration(f"BeatAction needs a spawn command, got {cmd!r}")
        nominal = ensure_finite(beat, "nominal beat")
        delivery = ensure_finite(nominal - warmup_for(cmd), "delivery beat")
        return cls(delivery_beat=delivery, cmd=cmd, group=int(group), nominal_beat=nominal)


def validate_action(action: BeatAction) -> Beats:
    """Check an action is safe to queue; returns its delivery beat."""
    if not isinstance(action, BeatAction):
        raise InvalidConfiguration(f"Expected a BeatAction, got {action!r}")
    if not is_spawn_cmd(action.cmd):
        raise InvalidConfiguration(f"BeatAction needs a spawn command, got {action.cmd!r}")
    return ensure_finite(action.delivery_beat, "delivery beat")


@dataclass
class SongMap:
    """Everything needed to play one song's chart."""

    bpm: float = DEFAULT_BPM
    skip_amount: Beats = Beats(0.0)
    actions: list[BeatAction] = field(default_factory=list)

    def add_action(self, action: BeatAction) -> None:
        validate_action(action)
        self.actions.append(action)

    def add_actions(self, actions: Iterable[BeatAction]) -> None:
        for action in actions:
            self.add_action(action)

    @property
    def skip_seconds(self) -> float:
        return float(Beats(self.skip_amount).to_seconds(self.bpm))
