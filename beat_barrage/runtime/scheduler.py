"""Deliver BeatActions to the world as the song clock advances."""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Iterable

from beat_barrage.runtime.world import World
from beat_barrage.schemas.positions import WorldPos
from beat_barrage.schemas.song_map import BeatAction, SongMap, validate_action
from beat_barrage.schemas.spawn import execute
from beat_barrage.schemas.units import Beats

logger = logging.getLogger(__name__)


class Scheduler:
    """Min-heap of BeatActions keyed on delivery beat.

    Actions sharing a delivery beat come out in the order they were given.
    Every action is dispatched exactly once and never re-queued.
    """

    def __init__(self, actions: Iterable[BeatAction] = ()):
        self._counter = itertools.count()
        self._queue: list[tuple[float, int, BeatAction]] = []
        for action in actions:
            beat = validate_action(action)
            self._queue.append((float(beat), next(self._counter), action))
        heapq.heapify(self._queue)
        logger.debug("Scheduler loaded with %d actions", len(self._queue))

    @classmethod
    def from_song_map(cls, song_map: SongMap) -> Scheduler:
        return cls(song_map.actions)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def is_empty(self) -> bool:
        return not self._queue

    def peek_beat(self) -> Beats | None:
        """Delivery beat of the next action, or None when drained."""
        if not self._queue:
            return None
        return Beats(self._queue[0][0])

    def update(self, now: float, world: World, player_pos: WorldPos) -> list[BeatAction]:
        """Dispatch every action whose delivery beat is ``<= now``.

        Catches up on everything that fell due since the previous call, in
        non-decreasing delivery-beat order, so a long frame never skips an
        action. Calling with an earlier ``now`` than before dispatches
        nothing.

        Returns:
            The dispatched actions, in dispatch order.
        """
        dispatched: list[BeatAction] = []
        while self._queue and self._queue[0][0] <= now:
            _, _, action = heapq.heappop(self._queue)
            execute(action.cmd, action.delivery_beat, world, player_pos, action.group)
            dispatched.append(action)
        if dispatched:
            logger.debug("Dispatched %d actions up to beat %.3f, %d queued",
                         len(dispatched), now, len(self._queue))
        return dispatched
