"""
Configuration management for Music Shelf
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger


@dataclass
class LibraryConfig:
    """Configuration for the song library and its store."""

    db_path: Optional[str] = None  # default: <data dir>/music_shelf.db
    supported_formats: List[str] = field(
        default_factory=lambda: [".mp3", ".m4a", ".wav", ".flac", ".aac"]
    )
    scan_recursive: bool = True
    duplicate_policy: str = "skip"  # 'skip' or 'overwrite'

    def validate(self) -> None:
        """Validate library configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.duplicate_policy not in {"skip", "overwrite"}:
            raise ValueError(
                f"Invalid duplicate_policy: {self.duplicate_policy!r}. "
                "Valid values are: 'skip', 'overwrite'"
            )


@dataclass
class PlayerConfig:
    """Configuration for playback."""

    mpv_socket_path: Optional[str] = None
    volume: int = 50
    shuffle_mode: str = "none"  # none, random, weighted
    repeat_mode: str = "none"  # none, all, one
    play_count_threshold: float = 5.0  # seconds before a play counts
    restart_threshold: float = 3.0  # "previous" restarts the track past this
    poll_interval: float = 0.25  # seconds between mpv status polls

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.shuffle_mode not in {"none", "random", "weighted"}:
            raise ValueError(f"Invalid shuffle_mode: {self.shuffle_mode!r}")
        if self.repeat_mode not in {"none", "all", "one"}:
            raise ValueError(f"Invalid repeat_mode: {self.repeat_mode!r}")
        if self.play_count_threshold < 0 or self.restart_threshold < 0:
            raise ValueError("Thresholds must be non-negative")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # default: <data dir>/music-shelf.log
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-shelf"
    return Path.home() / ".config" / "music-shelf"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the current working directory first,
    then falls back to XDG_CONFIG_HOME/music-shelf.
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-shelf"
    return Path.home() / ".local" / "share" / "music-shelf"


def get_database_path(config: Optional[Config] = None) -> Path:
    """Resolve the SQLite database path (env override > config > data dir)."""
    env_path = os.environ.get("MUSIC_SHELF_DB_PATH")
    if env_path:
        return Path(env_path).expanduser()
    if config and config.library.db_path:
        return Path(config.library.db_path).expanduser()
    return get_data_dir() / "music_shelf.db"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Shelf Configuration

[library]
# SQLite database location (default: ~/.local/share/music-shelf/music_shelf.db)
# db_path = "~/Music/music_shelf.db"

# Audio file formats picked up by `music-shelf import`
supported_formats = [".mp3", ".m4a", ".wav", ".flac", ".aac"]

# Recursively scan subdirectories
scan_recursive = true

# What to do when an imported file is already in the library: skip or overwrite
duplicate_policy = "skip"

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/mpv-socket"

# Default volume (0-100)
volume = 50

# Startup modes
shuffle_mode = "none"  # none, random, weighted
repeat_mode = "none"   # none, all, one

# Seconds of playback before a play is counted
play_count_threshold = 5.0

# "Previous" restarts the current track once playback passed this many seconds
restart_threshold = 3.0

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-shelf/music-shelf.log)
# log_file = "/path/to/custom/music-shelf.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_config(toml_data: dict) -> Config:
    config = Config()

    if "library" in toml_data:
        library_data = toml_data["library"]
        db_path = library_data.get("db_path")
        config.library = LibraryConfig(
            db_path=str(Path(db_path).expanduser()) if db_path else None,
            supported_formats=[
                fmt.lower() if fmt.startswith(".") else f".{fmt.lower()}"
                for fmt in library_data.get(
                    "supported_formats", config.library.supported_formats
                )
            ],
            scan_recursive=library_data.get(
                "scan_recursive", config.library.scan_recursive
            ),
            duplicate_policy=library_data.get(
                "duplicate_policy", config.library.duplicate_policy
            ),
        )
        try:
            config.library.validate()
        except ValueError as e:
            logger.warning(f"Invalid library configuration: {e}; using defaults")
            config.library = LibraryConfig()

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=player_data.get("volume", config.player.volume),
            shuffle_mode=player_data.get("shuffle_mode", config.player.shuffle_mode),
            repeat_mode=player_data.get("repeat_mode", config.player.repeat_mode),
            play_count_threshold=float(
                player_data.get(
                    "play_count_threshold", config.player.play_count_threshold
                )
            ),
            restart_threshold=float(
                player_data.get("restart_threshold", config.player.restart_threshold)
            ),
            poll_interval=float(
                player_data.get("poll_interval", config.player.poll_interval)
            ),
        )
        try:
            config.player.validate()
        except ValueError as e:
            logger.warning(f"Invalid player configuration: {e}; using defaults")
            config.player = PlayerConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSIC_SHELF_DB_PATH (resolved by get_database_path)
    - MUSIC_SHELF_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        config = Config()
    else:
        try:
            with open(config_path, "rb") as f:
                toml_data = tomllib.load(f)
            config = _parse_config(toml_data)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Error loading configuration from {config_path}: {e}")
            config = Config()

    log_level = os.environ.get("MUSIC_SHELF_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
