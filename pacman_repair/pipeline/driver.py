#!/usr/bin/env python3

import os
import time
import logging
from enum import Enum
from datetime import datetime
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config.manager import RepairConfig
from ..errors import RepairError, PrivilegeError, StepFailedError
from ..storage.manager import StorageManager
from ..system.tools import PackageManager, Keyring, CommandResult, find_missing_tools
from ..ui.reporter import Reporter

logger = logging.getLogger(__name__)

CONFIRM_PROMPT = "This will reset your Pacman database. Are you sure? (y/N): "

class RepairState(Enum):
    INIT = "init"
    PRIVILEGE_CHECKED = "privilege_checked"
    CONFIRMED = "confirmed"
    LOCK_HANDLED = "lock_handled"
    SYNC_RESET = "sync_reset"
    KEYRING_RESET = "keyring_reset"
    KEYRING_INITIALIZED = "keyring_initialized"
    KEYRING_POPULATED = "keyring_populated"
    RESYNCED = "resynced"
    CANCELLED = "cancelled"
    ABORTED = "aborted"

# Each state may only be entered from the one before it
NEXT_STATE = {
    RepairState.INIT: RepairState.PRIVILEGE_CHECKED,
    RepairState.PRIVILEGE_CHECKED: RepairState.CONFIRMED,
    RepairState.CONFIRMED: RepairState.LOCK_HANDLED,
    RepairState.LOCK_HANDLED: RepairState.SYNC_RESET,
    RepairState.SYNC_RESET: RepairState.KEYRING_RESET,
    RepairState.KEYRING_RESET: RepairState.KEYRING_INITIALIZED,
    RepairState.KEYRING_INITIALIZED: RepairState.KEYRING_POPULATED,
    RepairState.KEYRING_POPULATED: RepairState.RESYNCED,
}

TERMINAL_STATES = {RepairState.RESYNCED, RepairState.CANCELLED, RepairState.ABORTED}

@dataclass
class StepResult:
    step: str
    success: bool
    message: str = ""

class RepairPipeline:
    """Runs the repair steps in order, stopping at the first failure.

    Nothing is rolled back on failure. When backups are enabled the moved-aside
    directories are the only way back.
    """

    def __init__(self, config: RepairConfig, reporter: Reporter,
                 package_manager: PackageManager, keyring: Keyring,
                 storage: Optional[StorageManager] = None,
                 geteuid: Optional[Callable[[], int]] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 tool_check: Callable[[RepairConfig], List[str]] = find_missing_tools,
                 clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self.reporter = reporter
        self.package_manager = package_manager
        self.keyring = keyring
        self.storage = storage or StorageManager(config)
        self.geteuid = geteuid or os.geteuid
        self.sleep = sleep or time.sleep
        self.tool_check = tool_check
        self.clock = clock

        self.state = RepairState.INIT
        self.results: List[StepResult] = []

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def run(self) -> int:
        """Run the whole repair; returns the process exit code"""
        if self.state is not RepairState.INIT:
            raise RuntimeError(f"Pipeline already run (state: {self.state.value})")

        try:
            self.check_privileges()
            if not self.confirm():
                return 0
            self.reporter.banner("Starting Pacman database and keyring repair...")
            self.verify_tools()
            self.handle_lock()
            self.reset_sync_data()
            self.reset_keyring()
            self.initialize_keyring()
            self.populate_keyring()
            self.resync()
        except RepairError as e:
            self._abort(e)
            return 1

        self.reporter.success("Pacman repair completed successfully!")
        return 0

    def check_privileges(self):
        euid = self.geteuid()
        if euid != 0:
            logger.debug(f"Effective UID is {euid}")
            raise PrivilegeError("This script must be run as root or with sudo")
        self._advance(RepairState.PRIVILEGE_CHECKED, "privileges")

    def confirm(self) -> bool:
        if not self.reporter.confirm(CONFIRM_PROMPT):
            self.reporter.alert("!! Operation cancelled.")
            self.results.append(StepResult("confirm", False, "cancelled by operator"))
            self.state = RepairState.CANCELLED
            logger.info("Repair cancelled by operator")
            return False
        self._advance(RepairState.CONFIRMED, "confirm")
        return True

    def verify_tools(self):
        missing = self.tool_check(self.config)
        if missing:
            raise StepFailedError(
                "tools", f"Pacman is not installed or not in PATH (missing: {', '.join(missing)})"
            )

    def handle_lock(self):
        self.reporter.step("Checking for pacman db lock...")
        if not self.storage.lock_exists():
            self.reporter.success(">> Pacman db lock not found.")
            self._advance(RepairState.LOCK_HANDLED, "lock", "not found")
            return

        self.reporter.alert("!!! Pacman database is locked.")
        self.reporter.step("Removing pacman db lock...")
        removed = self.storage.remove_lock()
        self.reporter.plain(f"removed '{removed}'")
        self._advance(RepairState.LOCK_HANDLED, "lock", f"removed {removed}")

    def reset_sync_data(self):
        backup = self.config.backup_before_reset
        if backup:
            self.reporter.step("Backing up and removing sync databases...")
        else:
            self.reporter.step("Removing sync databases...")
        outcome = self.storage.reset_sync_data(backup, now=self.clock())
        self._report_reset(outcome)
        self._advance(RepairState.SYNC_RESET, "sync", outcome['action'])

    def reset_keyring(self):
        backup = self.config.backup_before_reset
        if backup:
            self.reporter.step("Backing up and removing GnuPG keyring...")
        else:
            self.reporter.step("Removing GnuPG keyring...")
        outcome = self.storage.reset_keyring(backup, now=self.clock())
        self._report_reset(outcome)
        self._advance(RepairState.KEYRING_RESET, "keyring", outcome['action'])

    def initialize_keyring(self):
        self.reporter.step("Initializing pacman keyring...")
        result = self.keyring.init()
        if not result.success:
            raise self._command_failure("keyring-init", "Failed to initialize pacman keyring", result)
        self._advance(RepairState.KEYRING_INITIALIZED, "keyring-init")

    def populate_keyring(self):
        self.reporter.step("Populating pacman keyring...")
        retry = self.config.populate_retry
        tool = os.path.basename(self.config.pacman_key_binary)

        for attempt in range(1, retry.attempts + 1):
            result = self.keyring.populate()
            if result.success:
                break
            logger.info(f"Keyring populate attempt {attempt} failed: {result.describe()}")
            if attempt == retry.attempts:
                noun = "attempt" if retry.attempts == 1 else "attempts"
                raise self._command_failure(
                    "keyring-populate",
                    f"Failed to populate pacman keyring after {retry.attempts} {noun}",
                    result,
                )
            self.reporter.warning(f">> Retrying {tool} populate (attempt {attempt} of {retry.attempts})...")
            self.sleep(retry.delay)

        self._advance(RepairState.KEYRING_POPULATED, "keyring-populate", f"attempts: {attempt}")

    def resync(self):
        self.reporter.step("Synchronizing and updating packages...")
        result = self.package_manager.refresh_and_upgrade()
        if not result.success:
            raise self._command_failure(
                "resync",
                "Failed to update packages. Please check your internet connection and try again.",
                result,
            )
        self._advance(RepairState.RESYNCED, "resync")

    def _report_reset(self, outcome):
        if outcome['action'] == 'backed_up':
            self.reporter.info(f">> Moved {outcome['path']} to {outcome['backup_path']}")
        elif outcome['action'] == 'deleted':
            self.reporter.info(f">> Deleted {outcome['path']}")
        else:
            self.reporter.info(f">> {outcome['path']} not found, nothing to do.")

    def _command_failure(self, step: str, message: str, result: CommandResult) -> StepFailedError:
        logger.info(f"{step} failed: {result.describe()}")
        return StepFailedError(step, f"{message} ({result.describe()})")

    def _advance(self, new_state: RepairState, step: str, message: str = ""):
        expected = NEXT_STATE.get(self.state)
        if new_state is not expected:
            raise RuntimeError(f"Invalid transition {self.state.value} -> {new_state.value}")
        self.results.append(StepResult(step, True, message))
        self.state = new_state
        logger.debug(f"Entered state {new_state.value}")

    def _abort(self, error: RepairError):
        step = getattr(error, 'step', 'privileges')
        message = str(error)
        cause = getattr(error, 'cause', None)
        if cause is not None:
            message = f"{message}: {cause}"

        self.results.append(StepResult(step, False, message))
        self.state = RepairState.ABORTED
        logger.info(f"Repair aborted at {step}: {message}")
        self.reporter.error(message)
