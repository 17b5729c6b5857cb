#!/usr/bin/env python3

import os
import shutil
import logging
from typing import Dict, Optional, Any
from datetime import datetime

from ..config.manager import RepairConfig
from ..errors import StepFailedError

logger = logging.getLogger(__name__)

class StorageManager:
    """Filesystem side of the repair: the lock marker and the two directories
    that get moved aside or deleted before pacman rebuilds them."""

    def __init__(self, config: RepairConfig):
        self.config = config

    def lock_exists(self) -> bool:
        return os.path.lexists(self.config.lock_file)

    def remove_lock(self) -> str:
        """Force-remove the database lock, returning the removed path"""
        lock_file = self.config.lock_file
        try:
            os.remove(lock_file)
        except FileNotFoundError:
            # Released by its owner between the check and the removal
            logger.info(f"Lock {lock_file} disappeared before removal")
            return lock_file
        except OSError as e:
            raise StepFailedError("lock", "Failed to remove pacman db lock", e)
        logger.info(f"Removed lock file {lock_file}")
        return lock_file

    def reset_sync_data(self, backup: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Move the sync databases into a fresh backup directory, or delete them"""
        sync_path = self.config.sync_path
        if not os.path.isdir(sync_path):
            logger.debug(f"Sync directory {sync_path} not present")
            return {'action': 'absent', 'path': sync_path, 'backup_path': None}

        if not backup:
            self._delete_tree("sync", sync_path, "Failed to remove sync databases")
            return {'action': 'deleted', 'path': sync_path, 'backup_path': None}

        backup_path = self._unique_backup_path(sync_path, now)
        try:
            os.makedirs(backup_path, mode=0o755)
            entries = sorted(os.listdir(sync_path))
            for entry in entries:
                shutil.move(os.path.join(sync_path, entry), os.path.join(backup_path, entry))
                logger.debug(f"Moved {entry} to {backup_path}")
        except OSError as e:
            raise StepFailedError("sync", "Failed to backup sync databases", e)

        logger.info(f"Moved {len(entries)} sync entries to {backup_path}")
        return {'action': 'backed_up', 'path': sync_path, 'backup_path': backup_path}

    def reset_keyring(self, backup: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Rename the GnuPG keyring directory aside, or delete it"""
        keyring_path = self.config.keyring_path
        if not os.path.isdir(keyring_path):
            logger.debug(f"Keyring directory {keyring_path} not present")
            return {'action': 'absent', 'path': keyring_path, 'backup_path': None}

        if not backup:
            self._delete_tree("keyring", keyring_path, "Failed to remove GnuPG directory")
            return {'action': 'deleted', 'path': keyring_path, 'backup_path': None}

        backup_path = self._unique_backup_path(keyring_path, now)
        try:
            os.rename(keyring_path, backup_path)
        except OSError as e:
            raise StepFailedError("keyring", "Failed to backup GnuPG directory", e)

        logger.info(f"Renamed {keyring_path} to {backup_path}")
        return {'action': 'backed_up', 'path': keyring_path, 'backup_path': backup_path}

    def _delete_tree(self, step: str, path: str, failure_message: str):
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise StepFailedError(step, failure_message, e)
        logger.info(f"Deleted {path}")

    def _unique_backup_path(self, path: str, now: Optional[datetime]) -> str:
        candidate = self.config.backup_path(path, now)
        base = candidate
        counter = 1
        while os.path.lexists(candidate):
            candidate = f"{base}_{counter}"
            counter += 1
        return candidate
