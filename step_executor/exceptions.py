"""Errors raised by the step executor."""
from typing import Optional


class ExecutorError(Exception):
    """Base class for executor errors."""


class ValidationError(ExecutorError, ValueError):
    """A step was requested in a context that cannot run it."""


class CommandTimeout(ExecutorError):
    """A non-interactive command ran past its timeout and was killed."""

    def __init__(self, command: str, timeout: Optional[float]):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {command}")
