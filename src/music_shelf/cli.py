"""
Music Shelf CLI - Entry point

Library management subcommands plus an interactive player driven by mpv.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from music_shelf.core import (
    Config,
    ensure_directories,
    get_console,
    get_database_path,
    load_config,
    log,
    setup_loguru,
)
from music_shelf.domain.library import (
    SORT_KEYS,
    LibraryError,
    LibraryStore,
    SortOption,
    Song,
    SourceView,
    format_duration,
    import_songs,
    materialize_view,
    scan_directory,
)
from music_shelf.domain.playback import (
    BackendUnavailableError,
    MpvBackend,
    Next,
    Play,
    PlayCountTracker,
    PlaybackController,
    PlaybackSnapshot,
    Prev,
    RepeatMode,
    Seek,
    SetSource,
    ShuffleMode,
    Shutdown,
    Stop,
    TogglePlay,
    ToggleRepeat,
    ToggleShuffle,
    check_mpv_available,
)

PLAYER_HELP = """Commands:
  p        play/pause        n   next          b  previous
  s        stop              f N seek to N s   z  cycle shuffle
  r        cycle repeat      q   quit"""


def _view_from_args(args: argparse.Namespace) -> SourceView:
    return SourceView(
        kind="playlist" if args.playlist is not None else "library",
        playlist_id=args.playlist,
        query=args.search or "",
        sort=SortOption(args.sort, "desc" if args.desc else "asc") if args.sort else None,
    )


async def _load_view(store: LibraryStore, view: SourceView) -> list[Song]:
    songs = await store.list_songs()
    playlists = await store.list_playlists()
    return materialize_view(view, songs, playlists)


async def run_import(args: argparse.Namespace, config: Config, store: LibraryStore) -> int:
    folder = Path(args.folder).expanduser()
    if not folder.exists():
        log(f"Folder not found: {folder}", level="error")
        return 1

    with Progress(
        TextColumn("[cyan]Scanning"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.description}"),
        console=get_console(),
        transient=True,
    ) as progress:
        task = progress.add_task("", total=None)

        def on_progress(current: int, total: int, path: Path) -> None:
            progress.update(task, completed=current, total=total, description=escape(path.name))

        records = await asyncio.to_thread(
            scan_directory,
            folder,
            config.library.supported_formats,
            config.library.scan_recursive,
            on_progress,
        )

    policy = "overwrite" if args.overwrite else config.library.duplicate_policy
    result = await import_songs(store, records, policy=policy)

    log(
        f"Imported {result.added} new, {result.updated} updated, "
        f"{result.skipped_duplicates} duplicates skipped "
        f"({result.unresolved_metadata} with default metadata)"
    )
    return 0


async def run_songs(args: argparse.Namespace, config: Config, store: LibraryStore) -> int:
    songs = await _load_view(store, _view_from_args(args))

    table = Table(title=f"Songs ({len(songs)})")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Time", justify="right")
    table.add_column("Plays", justify="right")
    for song in songs:
        table.add_row(
            song.id,
            song.title,
            song.artist,
            song.album,
            format_duration(song.duration),
            str(song.play_count),
        )
    get_console().print(table)
    return 0


async def run_playlists(args: argparse.Namespace, config: Config, store: LibraryStore) -> int:
    table = Table(title="Playlists")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Songs", justify="right")
    for playlist in await store.list_playlists():
        table.add_row(str(playlist.id), playlist.name, str(len(playlist.song_ids)))
    get_console().print(table)
    return 0


async def run_playlist(args: argparse.Namespace, config: Config, store: LibraryStore) -> int:
    if args.action == "create":
        playlist_id = await store.create_playlist(args.name)
        log(f"Created playlist '{args.name}' (id {playlist_id})")
    elif args.action == "add":
        if await store.add_song_to_playlist(args.playlist_id, args.song_id):
            log(f"Added {args.song_id} to playlist {args.playlist_id}")
        else:
            log(f"{args.song_id} is already in playlist {args.playlist_id}", level="warning")
    elif args.action == "set":
        await store.set_playlist_songs(args.playlist_id, args.song_ids)
        log(f"Playlist {args.playlist_id} now has {len(set(args.song_ids))} songs")
    elif args.action == "delete":
        await store.delete_playlist(args.playlist_id)
        log(f"Deleted playlist {args.playlist_id}")
    return 0


def _print_status(snapshot: PlaybackSnapshot) -> None:
    song = snapshot.current_song
    if song is None:
        get_console().print("[dim]Stopped[/dim]")
        return
    get_console().print(
        f"{snapshot.status}: {song.title} - {song.artist} "
        f"[{snapshot.index + 1}/{len(snapshot.queue)}] "
        f"shuffle={snapshot.shuffle_mode.value} repeat={snapshot.repeat_mode.value}",
        markup=False,
    )


def _parse_player_input(line: str) -> Optional[object]:
    parts = line.strip().split()
    if not parts:
        return None
    key = parts[0].lower()
    if key == "f" and len(parts) > 1:
        try:
            return Seek(float(parts[1]))
        except ValueError:
            return None
    return {
        "p": TogglePlay(),
        "n": Next(),
        "b": Prev(),
        "s": Stop(),
        "z": ToggleShuffle(),
        "r": ToggleRepeat(),
        "q": Shutdown(),
    }.get(key)


async def _cancel_task(task: asyncio.Task) -> None:
    """Cancel a background task and wait for it to finish."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception(f"Background task {task.get_name()} failed")


async def run_play(args: argparse.Namespace, config: Config, store: LibraryStore) -> int:
    if not check_mpv_available():
        log("mpv is not installed or not on PATH", level="error")
        return 1

    source = await _load_view(store, _view_from_args(args))
    if not source:
        log("Nothing to play", level="warning")
        return 1

    backend = MpvBackend(config.player)
    try:
        await backend.start()
    except BackendUnavailableError as e:
        log(str(e), level="error")
        return 1

    tracker = PlayCountTracker(store, threshold=config.player.play_count_threshold)
    controller = PlaybackController(
        backend,
        tracker,
        shuffle_mode=ShuffleMode(args.shuffle or config.player.shuffle_mode),
        repeat_mode=RepeatMode(args.repeat or config.player.repeat_mode),
        restart_threshold=config.player.restart_threshold,
    )

    last_song: list[Optional[str]] = [None]

    def on_change(snapshot: PlaybackSnapshot) -> None:
        song = snapshot.current_song
        song_id = song.id if song else None
        if song_id != last_song[0]:
            last_song[0] = song_id
            _print_status(snapshot)

    controller.add_listener(on_change)

    runner = asyncio.create_task(controller.run())
    watcher = asyncio.create_task(
        backend.watch(controller.post, interval=config.player.poll_interval),
        name="mpv-watch",
    )
    controller.post(SetSource(source))
    controller.post(Play(song_id=args.song_id))

    get_console().print(PLAYER_HELP, markup=False)
    try:
        while not runner.done():
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                controller.post(Shutdown())
                break
            message = _parse_player_input(line)
            if message is None:
                _print_status(controller.snapshot)
                continue
            controller.post(message)
            if isinstance(message, Shutdown):
                break
        await runner
    finally:
        await _cancel_task(watcher)
        await backend.close()
        await tracker.drain()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-shelf",
        description="Music Shelf - Local music library and player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    import_parser = subparsers.add_parser("import", help="Import audio files from a folder")
    import_parser.add_argument("folder", help="Folder (or single file) to import")
    import_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Refresh metadata of songs already in the library",
    )
    import_parser.set_defaults(handler=run_import)

    def add_view_arguments(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--playlist", type=int, help="Use a playlist instead of the library")
        sub.add_argument("--search", help="Filter by title, artist or album")
        sub.add_argument("--sort", choices=SORT_KEYS, help="Sort key")
        sub.add_argument("--desc", action="store_true", help="Sort descending")

    songs_parser = subparsers.add_parser("songs", help="List songs")
    add_view_arguments(songs_parser)
    songs_parser.set_defaults(handler=run_songs)

    playlists_parser = subparsers.add_parser("playlists", help="List playlists")
    playlists_parser.set_defaults(handler=run_playlists)

    playlist_parser = subparsers.add_parser("playlist", help="Edit playlists")
    actions = playlist_parser.add_subparsers(dest="action", required=True)
    create = actions.add_parser("create", help="Create a playlist")
    create.add_argument("name")
    add = actions.add_parser("add", help="Append a song to a playlist")
    add.add_argument("playlist_id", type=int)
    add.add_argument("song_id")
    set_songs = actions.add_parser("set", help="Replace a playlist's songs")
    set_songs.add_argument("playlist_id", type=int)
    set_songs.add_argument("song_ids", nargs="*")
    delete = actions.add_parser("delete", help="Delete a playlist")
    delete.add_argument("playlist_id", type=int)
    playlist_parser.set_defaults(handler=run_playlist)

    play_parser = subparsers.add_parser("play", help="Play songs interactively")
    play_parser.add_argument("song_id", nargs="?", help="Song to start with")
    add_view_arguments(play_parser)
    play_parser.add_argument("--shuffle", choices=[m.value for m in ShuffleMode])
    play_parser.add_argument("--repeat", choices=[m.value for m in RepeatMode])
    play_parser.set_defaults(handler=run_play)

    return parser


def main() -> None:
    """Main entry point for the music-shelf command."""
    args = build_parser().parse_args()

    ensure_directories()
    config = load_config()
    setup_loguru(config.logging)

    store = LibraryStore(get_database_path(config))
    try:
        exit_code = asyncio.run(args.handler(args, config, store))
    except LibraryError as e:
        logger.exception(f"Command '{args.subcommand}' failed")
        log(f"Error: {e}", level="error")
        exit_code = 1
    except KeyboardInterrupt:
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
