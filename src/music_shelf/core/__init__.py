"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Database setup (SQLite)
- Logging and console output (Loguru, Rich)

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

# Configuration
from .config import (
    Config,
    LibraryConfig,
    PlayerConfig,
    LoggingConfig,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_database_path,
    create_default_config,
    ensure_directories,
)

# Database
from .database import SCHEMA_VERSION, get_db_connection, init_database

# Output
from .console import get_console
from .output import setup_loguru, log

__all__ = [
    # Config
    "Config",
    "LibraryConfig",
    "PlayerConfig",
    "LoggingConfig",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_database_path",
    "create_default_config",
    "ensure_directories",
    # Database
    "SCHEMA_VERSION",
    "get_db_connection",
    "init_database",
    # Output
    "get_console",
    "setup_loguru",
    "log",
]
