"""Configuration management for RunLog Sync."""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir, user_log_dir

__all__ = [
    "Config",
    "DriveSettings",
    "SyncSettings",
    "setup_logging",
    "DRIVE_SCOPE",
    "DRIVE_FILE_NAME",
]

logger = logging.getLogger(__name__)

APP_NAME = "RunLog Sync"
APP_AUTHOR = "RunLog"

# Google endpoints
DEFAULT_DRIVE_API_URL = "https://www.googleapis.com"
DEFAULT_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
DRIVE_FILE_NAME = "running-tracker-data.json"

# Sync settings
DEFAULT_SYNC_INTERVAL_MINUTES = 5
DEFAULT_AUTH_TIMEOUT = 300  # seconds


@dataclass
class DriveSettings:
    """Google Drive and OAuth endpoint configuration."""

    api_base_url: str = DEFAULT_DRIVE_API_URL
    auth_url: str = DEFAULT_AUTH_URL
    scope: str = DRIVE_SCOPE
    file_name: str = DRIVE_FILE_NAME
    timeout: int = 30  # seconds, per request
    callback_host: str = "127.0.0.1"
    callback_port: int = 0  # 0 = random free port
    auth_timeout_seconds: int = DEFAULT_AUTH_TIMEOUT


@dataclass
class SyncSettings:
    """Auto-sync configuration."""

    interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    max_retries: int = 3  # transport-level retries only


@dataclass
class Config:
    """Main configuration object."""

    drive: DriveSettings = field(default_factory=DriveSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    debug_mode: bool = False
    data_dir: Optional[str] = None  # overrides the platform data dir

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory path (for the SQLite stores)."""
        return Path(user_data_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the config file path."""
        return cls.get_config_dir() / "config.json"

    @property
    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return self.get_data_dir()

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "Config":
        """Load config from file, or return defaults."""
        config_file = config_file or cls.get_config_file()
        if config_file.exists():
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return cls._from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        return cls()

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary."""
        drive_data = data.pop("drive", {})
        sync_data = data.pop("sync", {})

        return cls(
            drive=DriveSettings(**drive_data) if drive_data else DriveSettings(),
            sync=SyncSettings(**sync_data) if sync_data else SyncSettings(),
            **{k: v for k, v in data.items() if k in cls.__dataclass_fields__},
        )

    def save(self, config_file: Optional[Path] = None) -> None:
        """Save config to file."""
        config_file = config_file or self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Config saved to {config_file}")


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "runlog-sync.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
