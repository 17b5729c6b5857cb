#!/usr/bin/env python3

import re
import logging
from dataclasses import dataclass
from typing import Optional, TextIO

from rich.console import Console

logger = logging.getLogger(__name__)

AFFIRMATIVE = re.compile(r"^[Yy]$")

@dataclass(frozen=True)
class Palette:
    """Rich style names for each kind of status line"""
    error: str = "red"
    success: str = "green"
    info: str = "bold cyan"
    warning: str = "bold yellow"

class Reporter:
    """Operator-facing status output.

    Status lines are written through rich consoles so colour is only emitted
    when the stream is a terminal. Errors go to standard error, everything
    else to standard output.
    """

    def __init__(self, console: Optional[Console] = None,
                 error_console: Optional[Console] = None,
                 palette: Optional[Palette] = None,
                 stdin: Optional[TextIO] = None):
        self.console = console or Console()
        self.error_console = error_console or Console(stderr=True)
        self.palette = palette or Palette()
        self.stdin = stdin

    def _emit(self, console: Console, message: str, style: Optional[str] = None):
        console.print(message, style=style, markup=False, highlight=False, soft_wrap=True)

    def step(self, message: str):
        self._emit(self.console, f"==>> {message}", self.palette.info)

    def banner(self, message: str):
        self._emit(self.console, f"==>> {message}", self.palette.warning)

    def info(self, message: str):
        self._emit(self.console, message, self.palette.info)

    def success(self, message: str):
        self._emit(self.console, message, self.palette.success)

    def warning(self, message: str):
        self._emit(self.console, message, self.palette.warning)

    def alert(self, message: str):
        """Red line on standard output, for notable but non-fatal states"""
        self._emit(self.console, message, self.palette.error)

    def error(self, message: str):
        self._emit(self.error_console, f"Error: {message}", self.palette.error)

    def plain(self, text: str, stderr: bool = False):
        self._emit(self.error_console if stderr else self.console, text)

    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question; only a single 'y' or 'Y' counts as yes"""
        try:
            answer = self.console.input(prompt, markup=False, stream=self.stdin)
        except EOFError:
            logger.debug("No answer on stdin, treating as no")
            return False
        return bool(AFFIRMATIVE.match(answer.strip()))
