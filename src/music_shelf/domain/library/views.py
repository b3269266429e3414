"""
Source views: materialize the library or a playlist as a filtered, sorted
song list. The result is what the queue builder receives.
"""

from typing import Iterable, Literal, NamedTuple, Optional, Sequence

from loguru import logger

from .models import Playlist, Song

SortKey = Literal["title", "artist", "play_count", "date_added"]
SortDirection = Literal["asc", "desc"]

SORT_KEYS: tuple[str, ...] = ("title", "artist", "play_count", "date_added")


class SortOption(NamedTuple):
    key: SortKey = "title"
    direction: SortDirection = "asc"


class SourceView(NamedTuple):
    """Which songs are on screen: the whole library or one playlist."""

    kind: Literal["library", "playlist"] = "library"
    playlist_id: Optional[int] = None
    query: str = ""
    sort: Optional[SortOption] = SortOption()


def resolve_playlist_songs(playlist: Playlist, songs: Iterable[Song]) -> list[Song]:
    """Map a playlist's song ids onto library songs, in playlist order.

    Ids that no longer resolve are dropped.
    """
    by_id = {song.id: song for song in songs}
    resolved = [by_id[song_id] for song_id in playlist.song_ids if song_id in by_id]
    dangling = len(playlist.song_ids) - len(resolved)
    if dangling:
        logger.debug(
            f"Playlist {playlist.id} has {dangling} references to missing songs"
        )
    return resolved


def filter_songs(songs: Iterable[Song], query: str) -> list[Song]:
    """Case-insensitive substring match over title, artist and album."""
    needle = query.strip().casefold()
    if not needle:
        return list(songs)
    return [
        song
        for song in songs
        if needle in song.title.casefold()
        or needle in song.artist.casefold()
        or needle in song.album.casefold()
    ]


def sort_songs(songs: Iterable[Song], sort: SortOption) -> list[Song]:
    """Stable sort; text keys compare case-insensitively."""
    if sort.key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort.key!r}")

    if sort.key in ("title", "artist"):
        key = lambda song: getattr(song, sort.key).casefold()  # noqa: E731
    else:
        key = lambda song: getattr(song, sort.key)  # noqa: E731

    return sorted(songs, key=key, reverse=sort.direction == "desc")


def materialize_view(
    view: SourceView,
    songs: Sequence[Song],
    playlists: Sequence[Playlist],
) -> list[Song]:
    """Build the ordered song list a view shows.

    An unknown playlist id yields an empty view. ``sort=None`` keeps library
    order (or playlist order for playlist views).
    """
    if view.kind == "playlist":
        playlist = next((p for p in playlists if p.id == view.playlist_id), None)
        if playlist is None:
            logger.warning(f"View references unknown playlist {view.playlist_id}")
            return []
        items = resolve_playlist_songs(playlist, songs)
    else:
        items = list(songs)

    items = filter_songs(items, view.query)

    if view.sort is not None:
        items = sort_songs(items, view.sort)

    return items
