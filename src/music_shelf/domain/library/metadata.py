"""
Tag reading and folder scanning for the import boundary.

Reads title/artist/album/duration with Mutagen and produces ImportRecords.
Unreadable tags are not an error: the record simply carries no metadata and
the importer applies defaults.
"""

from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from .import_songs import make_song_id
from .models import ImportRecord


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                if isinstance(value, list) and value:
                    return str(value[0]).strip() or None
                return str(value).strip() or None
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def read_import_record(local_path: Path) -> ImportRecord:
    """Build an ImportRecord for one audio file.

    Raises:
        OSError: If the file itself can't be stat'ed
    """
    stat = local_path.stat()
    record = ImportRecord(
        song_id=make_song_id(local_path.name, stat.st_mtime),
        file_name=local_path.name,
        file_path=str(local_path),
    )

    try:
        audio_file = MutagenFile(local_path, easy=True)
    except (MutagenError, OSError) as e:
        logger.warning(f"Could not read metadata from {local_path}: {e}")
        return record

    if audio_file is None:
        logger.debug(f"Unrecognized audio container, using defaults: {local_path}")
        return record

    duration = 0.0
    if getattr(audio_file, "info", None) is not None:
        duration = float(getattr(audio_file.info, "length", 0.0) or 0.0)

    tags = audio_file.tags or {}
    return record._replace(
        title=get_tag_value(tags, ["title", "TITLE"]),
        artist=get_tag_value(tags, ["artist", "ARTIST"]),
        album=get_tag_value(tags, ["album", "ALBUM"]),
        duration=duration,
    )


def scan_directory(
    directory: Path,
    supported_formats: list[str],
    recursive: bool = True,
    progress_callback: Optional[Callable[[int, int, Path], None]] = None,
) -> list[ImportRecord]:
    """Scan a directory for supported audio files.

    Args:
        directory: Directory (or single file) to scan
        supported_formats: Lower-case extensions including the dot
        recursive: Whether to descend into subdirectories
        progress_callback: Optional callback(current, total, path)

    Returns:
        List of ImportRecords, one per readable file
    """
    formats = {fmt.lower() for fmt in supported_formats}

    if directory.is_file():
        candidates = [directory]
    else:
        walker = directory.rglob("*") if recursive else directory.glob("*")
        candidates = sorted(p for p in walker if p.suffix.lower() in formats)

    files = [p for p in candidates if p.is_file() and p.suffix.lower() in formats]
    records: list[ImportRecord] = []

    for index, local_path in enumerate(files, start=1):
        if progress_callback:
            progress_callback(index, len(files), local_path)
        try:
            records.append(read_import_record(local_path))
        except OSError as e:
            logger.warning(f"Skipping unreadable file {local_path}: {e}")

    logger.info(f"Scanned {directory}: {len(records)} audio files")
    return records


def format_duration(seconds: float) -> str:
    """Format duration in seconds to M:SS (or H:MM:SS)."""
    if not seconds or seconds < 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
