#!/usr/bin/env python3

import sys
import os
import argparse
import logging
from typing import List, Optional

from rich.console import Console

from .config.manager import ConfigManager, RepairConfig
from .pipeline.driver import RepairPipeline
from .system.tools import PacmanCLI, PacmanKeyCLI
from .ui.reporter import Reporter

def setup_logging(level: str = "ERROR", log_file: Optional[str] = None):
    """Configure logging for the application"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Operator-facing output goes through the Reporter; log records are
    # diagnostics and only reach a file when one is configured
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers
    )

class RepairArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports misuse with the full help text and exit status 1"""

    def error(self, message):
        self.fail_usage(message)

    def fail_usage(self, message: str):
        Console(stderr=True).print(message, style="red", markup=False, highlight=False, soft_wrap=True)
        self.print_help(sys.stderr)
        self.exit(1)

def create_argument_parser() -> RepairArgumentParser:
    """Create and configure argument parser"""
    parser = RepairArgumentParser(
        description="Repair Pacman package manager database and keyring issues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
        epilog="""
This script will:
  1. Remove pacman db lock
  2. Remove sync databases
  3. Remove GnuPG keyring
  4. Initialize and populate pacman keyring
  5. Synchronize and update packages

Note: This script must be run with root privileges
        """
    )

    parser.add_argument(
        "-h", "--help",
        action="help",
        help="Display this help message and exit"
    )

    return parser

def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line; exits 0 on help and 1 on anything unrecognized"""
    parser = create_argument_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        parser.fail_usage(f"Unknown option: {unknown[0]}")
    return args

def build_pipeline(config: RepairConfig, reporter: Reporter) -> RepairPipeline:
    return RepairPipeline(
        config,
        reporter,
        package_manager=PacmanCLI(config.pacman_binary),
        keyring=PacmanKeyCLI(config.pacman_key_binary),
    )

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parse_arguments(argv)
    reporter = Reporter()

    config_manager = ConfigManager()
    try:
        config = config_manager.load_config()
    except ValueError as e:
        reporter.error(str(e))
        return 1

    setup_logging(config.log_level, config.log_file)
    logger = logging.getLogger(__name__)
    logger.debug(f"Effective configuration: {config_manager.describe()}")

    try:
        pipeline = build_pipeline(config, reporter)
        return pipeline.run()

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if config.log_level.upper() == "DEBUG":
            import traceback
            traceback.print_exc()
        return 1
