"""Configuration for pimcodec."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

from .errors import ConfigurationError


@dataclass
class CodecConfig:
    """Defaults the generators fall back to."""
    contacts_prod_id: str = "-//pimcodec Contacts//EN"
    events_prod_id: str = "-//pimcodec Calendar//pimcodec Calendar//EN"
    tasks_prod_id: str = "-//pimcodec Tasks//pimcodec Tasks//EN"
    calendar_name: str = "pimcodec Calendar"
    tasks_calendar_name: str = "pimcodec Tasks"
    fold_width: int = 75

    def __post_init__(self):
        # RFC 5545 folding needs room for the leading space plus one character
        if self.fold_width < 2:
            raise ConfigurationError(
                f"fold_width must be at least 2, got {self.fold_width}",
                {"fold_width": self.fold_width},
            )


@dataclass
class ServerConfig:
    """HTTP upload configuration."""
    max_upload_bytes: int = 5 * 1024 * 1024  # 5MB


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", {name: raw})


@dataclass
class Settings:
    """Main configuration."""
    codec: CodecConfig = field(default_factory=CodecConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from ``PIMCODEC_*`` environment variables."""
        defaults = CodecConfig()
        codec = CodecConfig(
            contacts_prod_id=os.getenv("PIMCODEC_CONTACTS_PRODID", defaults.contacts_prod_id),
            events_prod_id=os.getenv("PIMCODEC_EVENTS_PRODID", defaults.events_prod_id),
            tasks_prod_id=os.getenv("PIMCODEC_TASKS_PRODID", defaults.tasks_prod_id),
            calendar_name=os.getenv("PIMCODEC_CALENDAR_NAME", defaults.calendar_name),
            tasks_calendar_name=os.getenv(
                "PIMCODEC_TASKS_CALENDAR_NAME", defaults.tasks_calendar_name
            ),
            fold_width=_env_int("PIMCODEC_FOLD_WIDTH", defaults.fold_width),
        )
        server = ServerConfig(
            max_upload_bytes=_env_int("PIMCODEC_MAX_UPLOAD_BYTES", ServerConfig.max_upload_bytes),
        )
        logging_config = LoggingConfig(
            level=os.getenv("PIMCODEC_LOG_LEVEL", LoggingConfig.level).upper(),
            format=os.getenv("PIMCODEC_LOG_FORMAT", LoggingConfig.format),
        )
        return cls(codec=codec, server=server, logging=logging_config)

    def setup_logging(self) -> None:
        """Configure the root logger."""
        log_level = getattr(logging, self.logging.level, logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(self.logging.format))
        root_logger.addHandler(console_handler)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


__all__ = [
    "CodecConfig",
    "ServerConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
]
