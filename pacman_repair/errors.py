#!/usr/bin/env python3

from typing import Optional


class RepairError(Exception):
    """Base class for errors that abort a repair run"""


class PrivilegeError(RepairError):
    pass


class StepFailedError(RepairError):
    """A pipeline step did not complete; the run must stop here"""

    def __init__(self, step: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.step = step
        self.message = message
        self.cause = cause
