"""
Song import: identity derivation, metadata defaulting and duplicate policy.

The tag-reading side lives in metadata.py; this module only turns resolved
ImportRecords into Songs and hands them to the store.
"""

import time
from pathlib import Path
from typing import Iterable, Literal, Optional

from loguru import logger

from .models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, ImportRecord, ImportResult, Song
from .store import LibraryStore

DuplicatePolicy = Literal["skip", "overwrite"]


def make_song_id(file_name: str, mtime: float) -> str:
    """Derive a song identity from a file name and its modification time.

    ``mtime`` is in seconds (as returned by ``os.stat``) and is folded to whole
    milliseconds, so the same unchanged file always maps to the same id.
    """
    return f"{file_name}-{int(round(mtime * 1000))}"


def title_from_file_name(file_name: str) -> str:
    """Strip the extension: 'Intro.flac' -> 'Intro'."""
    stem = Path(file_name).stem
    return stem or file_name


def song_from_record(
    record: ImportRecord, date_added: Optional[float] = None
) -> tuple[Song, bool]:
    """Apply metadata defaults to an import record.

    Returns:
        Tuple of (song, metadata_unresolved) where the flag is True when any
        of title/artist/album fell back to its default
    """
    unresolved = not (record.title and record.artist and record.album)
    song = Song(
        id=record.song_id,
        file_name=record.file_name,
        file_path=record.file_path,
        title=record.title or title_from_file_name(record.file_name),
        artist=record.artist or UNKNOWN_ARTIST,
        album=record.album or UNKNOWN_ALBUM,
        duration=max(float(record.duration or 0.0), 0.0),
        play_count=0,
        date_added=date_added if date_added is not None else time.time(),
    )
    return song, unresolved


async def import_songs(
    store: LibraryStore,
    records: Iterable[ImportRecord],
    policy: DuplicatePolicy = "skip",
) -> ImportResult:
    """Import a batch of records into the library.

    Identities already in the library are skipped (policy "skip") or have their
    metadata overwritten (policy "overwrite"). An overwrite keeps the stored
    play count and date added.

    Raises:
        StorageUnavailable: If the store cannot be read or written
        ValueError: On an unknown policy
    """
    if policy not in ("skip", "overwrite"):
        raise ValueError(f"Unknown duplicate policy: {policy!r}")

    existing = {song.id: song for song in await store.list_songs()}
    now = time.time()

    batch: dict[str, Song] = {}
    unresolved_ids: dict[str, bool] = {}
    added = updated = skipped = 0

    for record in records:
        previous = existing.get(record.song_id)
        if previous is not None and policy == "skip":
            skipped += 1
            logger.debug(f"Skipping duplicate import: {record.song_id}")
            continue

        song, unresolved = song_from_record(record, date_added=now)
        if unresolved:
            logger.debug(f"Metadata defaults applied for {record.file_name}")

        if previous is not None:
            song = song._replace(
                play_count=previous.play_count, date_added=previous.date_added
            )

        if song.id in batch:
            # Same identity twice in one batch: last record wins
            pass
        elif previous is not None:
            updated += 1
        else:
            added += 1

        batch[song.id] = song
        unresolved_ids[song.id] = unresolved

    await store.upsert_songs(batch.values())

    result = ImportResult(
        added=added,
        updated=updated,
        skipped_duplicates=skipped,
        unresolved_metadata=sum(unresolved_ids.values()),
    )
    logger.info(
        f"Import finished: {result.added} added, {result.updated} updated, "
        f"{result.skipped_duplicates} duplicates skipped, "
        f"{result.unresolved_metadata} with default metadata"
    )
    return result
