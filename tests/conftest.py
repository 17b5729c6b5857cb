#!/usr/bin/env python3

"""
Pytest configuration and shared fixtures for pacman-repair test suite.
"""

import os
import sys
import tempfile
import pytest
from io import StringIO
from pathlib import Path
from datetime import datetime

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rich.console import Console

from pacman_repair.config.manager import RepairConfig, PopulateRetry
from pacman_repair.pipeline.driver import RepairPipeline
from pacman_repair.system.tools import CommandResult, PackageManager, Keyring
from pacman_repair.ui.reporter import Reporter


FIXED_NOW = datetime(2024, 5, 17, 9, 30, 15)


def ok(command):
    return CommandResult(command, 0)


def failed(command, returncode=1):
    return CommandResult(command, returncode)


class FakeKeyring(Keyring):
    """Keyring capability with scripted results and a call log"""

    def __init__(self, init_results=None, populate_results=None):
        self.init_results = list(init_results or [ok(["pacman-key", "--init"])])
        self.populate_results = list(populate_results or [ok(["pacman-key", "--populate"])])
        self.calls = []

    def init(self):
        self.calls.append("init")
        return self.init_results.pop(0)

    def populate(self):
        self.calls.append("populate")
        return self.populate_results.pop(0)


class FakePackageManager(PackageManager):
    def __init__(self, result=None):
        self.result = result or ok(["pacman", "-Syyuu", "--noconfirm"])
        self.calls = []

    def refresh_and_upgrade(self):
        self.calls.append("refresh_and_upgrade")
        return self.result


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after test"""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir

    # Cleanup
    import shutil
    if os.path.exists(temp_dir):
        shutil.rmtree(temp_dir)


@pytest.fixture
def sample_config(temp_dir):
    """Provide a config whose paths all live under the temp directory"""
    pacman_dir = os.path.join(temp_dir, "var", "lib", "pacman")
    pacman_d = os.path.join(temp_dir, "etc", "pacman.d")
    os.makedirs(pacman_dir)
    os.makedirs(pacman_d)
    return RepairConfig(
        lock_file=os.path.join(pacman_dir, "db.lck"),
        sync_path=os.path.join(pacman_dir, "sync"),
        keyring_path=os.path.join(pacman_d, "gnupg"),
        populate_retry=PopulateRetry(attempts=3, delay=2.0),
    )


@pytest.fixture
def populated_tree(sample_config):
    """Lock, sync databases and keyring all present, as on a broken system"""
    Path(sample_config.lock_file).touch()
    os.makedirs(sample_config.sync_path)
    for name in ("core.db", "extra.db", "multilib.db"):
        Path(sample_config.sync_path, name).write_text(name)
    os.makedirs(sample_config.keyring_path)
    Path(sample_config.keyring_path, "pubring.gpg").write_text("keys")
    return sample_config


def make_reporter(answer="y\n"):
    return Reporter(
        console=Console(file=StringIO(), color_system=None),
        error_console=Console(file=StringIO(), color_system=None),
        stdin=StringIO(answer),
    )


def stdout_of(reporter):
    return reporter.console.file.getvalue()


def stderr_of(reporter):
    return reporter.error_console.file.getvalue()


@pytest.fixture
def make_pipeline(sample_config):
    """Factory building a pipeline wired to fakes"""
    def _make(config=None, answer="y\n", keyring=None, package_manager=None,
              euid=0, missing_tools=None):
        pipeline = RepairPipeline(
            config or sample_config,
            make_reporter(answer),
            package_manager=package_manager or FakePackageManager(),
            keyring=keyring or FakeKeyring(),
            geteuid=lambda: euid,
            sleep=RecordingSleep(),
            tool_check=lambda config: list(missing_tools or []),
            clock=lambda: FIXED_NOW,
        )
        return pipeline
    return _make


@pytest.fixture(autouse=True)
def setup_logging():
    """Set up logging for tests"""
    import logging

    # Set up basic logging for tests
    logging.basicConfig(
        level=logging.WARNING,  # Only show warnings and errors in tests
        format="%(name)s - %(levelname)s - %(message)s"
    )


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add the integration marker to integration test classes"""
    for item in items:
        if "Integration" in item.cls.__name__ if item.cls else False:
            item.add_marker(pytest.mark.integration)
