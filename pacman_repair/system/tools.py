#!/usr/bin/env python3

import shutil
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..config.manager import RepairConfig

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CommandResult:
    command: List[str]
    returncode: int
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"'{' '.join(self.command)}' exited with status {self.returncode}"

class PackageManager(ABC):
    @abstractmethod
    def refresh_and_upgrade(self) -> CommandResult:
        """Force-refresh every database and upgrade all installed packages"""

class Keyring(ABC):
    @abstractmethod
    def init(self) -> CommandResult:
        pass

    @abstractmethod
    def populate(self) -> CommandResult:
        pass

def run_command(command: List[str]) -> CommandResult:
    """Run a command attached to the current terminal and wait for it.

    Output is not captured so the operator sees the tool's own messages.
    A missing executable is reported as a failed result, not raised.
    """
    logger.info(f"Running: {' '.join(command)}")
    try:
        completed = subprocess.run(command, check=False)
    except FileNotFoundError:
        logger.info(f"Command not found: {command[0]}")
        return CommandResult(command, 127, f"{command[0]}: command not found")
    except OSError as e:
        logger.info(f"Failed to execute {command[0]}: {e}")
        return CommandResult(command, 126, f"{command[0]}: {e}")

    logger.debug(f"{command[0]} exited with status {completed.returncode}")
    return CommandResult(command, completed.returncode)

class PacmanCLI(PackageManager):
    def __init__(self, binary: str = "pacman"):
        self.binary = binary

    def refresh_and_upgrade(self) -> CommandResult:
        return run_command([self.binary, "-Syyuu", "--noconfirm"])

class PacmanKeyCLI(Keyring):
    def __init__(self, binary: str = "pacman-key"):
        self.binary = binary

    def init(self) -> CommandResult:
        return run_command([self.binary, "--init"])

    def populate(self) -> CommandResult:
        return run_command([self.binary, "--populate"])

def find_missing_tools(config: RepairConfig) -> List[str]:
    """Names of the configured tools that do not resolve on PATH"""
    missing = []
    for binary in (config.pacman_binary, config.pacman_key_binary):
        if shutil.which(binary) is None:
            missing.append(binary)
    return missing
