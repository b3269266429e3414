"""Pure queue building for playback.

Turns a source list (already filtered and sorted upstream) plus a shuffle mode
into an immutable, point-in-time queue of song snapshots.
"""

import random
from enum import Enum
from typing import Optional, Sequence

from music_shelf.domain.library.models import Song

Queue = tuple[Song, ...]


class ShuffleMode(str, Enum):
    NONE = "none"
    RANDOM = "random"
    WEIGHTED = "weighted"

    def next(self) -> "ShuffleMode":
        """Cycle none -> random -> weighted -> none."""
        order = list(ShuffleMode)
        return order[(order.index(self) + 1) % len(order)]


def build_queue(
    source: Sequence[Song],
    mode: ShuffleMode = ShuffleMode.NONE,
    rng: Optional[random.Random] = None,
) -> Queue:
    """Build a queue from ``source`` under ``mode``.

    Args:
        source: Songs in view order
        mode: Shuffle mode
        rng: Random source; pass a seeded ``random.Random`` for reproducible
            orderings (defaults to the module-level generator)

    Returns:
        A new tuple; ``source`` is never mutated
    """
    rng = rng or random  # module functions share the global generator
    mode = ShuffleMode(mode)

    if mode is ShuffleMode.RANDOM:
        return tuple(_fisher_yates(list(source), rng))
    if mode is ShuffleMode.WEIGHTED:
        return tuple(_weighted_order(source, rng))
    return tuple(source)


def _fisher_yates(items: list[Song], rng: random.Random) -> list[Song]:
    # In-place over the copy handed in
    for i in range(len(items) - 1, 0, -1):
        j = rng.randrange(i + 1)
        items[i], items[j] = items[j], items[i]
    return items


def _weighted_order(source: Sequence[Song], rng: random.Random) -> list[Song]:
    """Favour less-played songs.

    Each song draws ``rng.random() * weight`` with
    ``weight = max(total_plays - play_count, 1)`` and the queue is sorted by
    the draw, highest first. This approximates weighted sampling without
    replacement; it is not an exact weighted permutation.
    """
    total = sum(song.play_count for song in source)
    keyed = [
        (rng.random() * max(total - song.play_count, 1), index, song)
        for index, song in enumerate(source)
    ]
    keyed.sort(key=lambda entry: entry[0], reverse=True)
    return [song for _, _, song in keyed]


def relocate(queue: Queue, song_id: Optional[str]) -> Optional[int]:
    """Index of ``song_id`` in ``queue`` (first occurrence), or None."""
    if song_id is None:
        return None
    for index, song in enumerate(queue):
        if song.id == song_id:
            return index
    return None
