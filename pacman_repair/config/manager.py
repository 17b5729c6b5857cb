#!/usr/bin/env python3

import os
import yaml
import logging
from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, fields

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/pacman-repair.yaml"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

@dataclass(frozen=True)
class PopulateRetry:
    attempts: int = 3
    delay: float = 2.0  # seconds between attempts

    def __post_init__(self):
        if isinstance(self.attempts, bool) or not isinstance(self.attempts, int):
            raise ValueError(f"populate_retry.attempts must be an integer, got {self.attempts!r}")
        if self.attempts < 1:
            raise ValueError(f"populate_retry.attempts must be at least 1, got {self.attempts}")
        if isinstance(self.delay, bool) or not isinstance(self.delay, (int, float)):
            raise ValueError(f"populate_retry.delay must be a number, got {self.delay!r}")
        if self.delay < 0:
            raise ValueError(f"populate_retry.delay must not be negative, got {self.delay}")

@dataclass(frozen=True)
class RepairConfig:
    lock_file: str = "/var/lib/pacman/db.lck"
    sync_path: str = "/var/lib/pacman/sync"
    keyring_path: str = "/etc/pacman.d/gnupg"
    pacman_binary: str = "pacman"
    pacman_key_binary: str = "pacman-key"
    # Move old data aside instead of deleting it
    backup_before_reset: bool = True
    populate_retry: PopulateRetry = field(default_factory=PopulateRetry)
    log_level: str = "ERROR"
    log_file: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.populate_retry, dict):
            object.__setattr__(self, "populate_retry", PopulateRetry(**self.populate_retry))
        elif not isinstance(self.populate_retry, PopulateRetry):
            raise ValueError(f"populate_retry must be a mapping, got {self.populate_retry!r}")

        if not isinstance(self.backup_before_reset, bool):
            raise ValueError(f"backup_before_reset must be true or false, got {self.backup_before_reset!r}")

        if not isinstance(self.log_level, str) or self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Invalid log_level: {self.log_level}")

    def backup_path(self, path: str, now: Optional[datetime] = None) -> str:
        """Timestamped sibling path used when moving `path` aside"""
        now = now or datetime.now()
        return f"{path.rstrip(os.sep)}_backup_{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"

class ConfigManager:
    """Read-only access to the optional administrator configuration file.

    The file is never created or rewritten by this tool. When it is absent
    the built-in defaults apply.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: Optional[RepairConfig] = None

    def load_config(self) -> RepairConfig:
        if self._config is not None:
            return self._config

        if not os.path.exists(self.config_path):
            logger.debug(f"No config file at {self.config_path}, using defaults")
            self._config = RepairConfig()
            return self._config

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f)

            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ValueError("top level must be a mapping")

            known = {f.name for f in fields(RepairConfig)}
            unknown = sorted(set(data) - known)
            if unknown:
                raise ValueError(f"unknown keys: {', '.join(unknown)}")

            self._config = RepairConfig(**data)
            logger.debug(f"Loaded config from {self.config_path}")
            return self._config

        except Exception as e:
            raise ValueError(f"Error loading config from {self.config_path}: {e}")

    def get_config(self) -> RepairConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def describe(self) -> Dict[str, Any]:
        """Effective settings, for debug logging"""
        config = self.get_config()
        return {
            'config_path': self.config_path,
            'lock_file': config.lock_file,
            'sync_path': config.sync_path,
            'keyring_path': config.keyring_path,
            'backup_before_reset': config.backup_before_reset,
            'populate_attempts': config.populate_retry.attempts,
            'populate_delay': config.populate_retry.delay,
        }
