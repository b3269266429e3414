"""
SQLite database setup for Music Shelf
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from loguru import logger


# Database schema version
SCHEMA_VERSION = 2


@contextmanager
def get_db_connection(db_path: Path):
    """Get a database connection with proper cleanup.

    The caller owns transaction boundaries (commit / rollback).
    """
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    try:
        yield conn
    finally:
        conn.close()


def migrate_database(conn, current_version: int) -> None:
    """Migrate database from current_version to latest schema."""
    if current_version < 2:
        # Migration from v1 to v2: songs remember where the file lives
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(songs)")}
        if "file_path" not in columns:
            conn.execute("ALTER TABLE songs ADD COLUMN file_path TEXT")
            logger.info("Migrated songs table to v2 (file_path column)")


def init_database(db_path: Path) -> None:
    """Initialize the database with required tables."""
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS songs (
                id TEXT PRIMARY KEY,
                file_name TEXT NOT NULL,
                file_path TEXT,
                title TEXT NOT NULL,
                artist TEXT NOT NULL,
                album TEXT NOT NULL,
                duration REAL NOT NULL DEFAULT 0,
                play_count INTEGER NOT NULL DEFAULT 0 CHECK (play_count >= 0),
                date_added REAL NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS playlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                date_created REAL NOT NULL
            )
        """)

        # No foreign key on song_id: playlists may reference removed songs
        conn.execute("""
            CREATE TABLE IF NOT EXISTS playlist_songs (
                playlist_id INTEGER NOT NULL,
                song_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (playlist_id, song_id),
                FOREIGN KEY (playlist_id) REFERENCES playlists (id) ON DELETE CASCADE
            )
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_songs_title ON songs (title)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_songs_artist ON songs (artist)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_playlists_name ON playlists (name)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_playlist_songs_position "
            "ON playlist_songs (playlist_id, position)"
        )

        # MAX handles databases left with more than one version row
        row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
        current_version = row["version"] if row and row["version"] else 0

        if current_version > SCHEMA_VERSION:
            logger.warning(
                f"Database {db_path} has schema v{current_version}, newer than "
                f"supported v{SCHEMA_VERSION}; leaving it as is"
            )
            conn.commit()
            return

        if 0 < current_version < SCHEMA_VERSION:
            migrate_database(conn, current_version)

        if current_version != SCHEMA_VERSION:
            conn.execute("DELETE FROM schema_version")
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )

        conn.commit()

    logger.debug(f"Database initialized: {db_path} (schema v{SCHEMA_VERSION})")
