"""
Step Executor - chainable orchestration of console commands, external commands,
in-process functions and HTTP pings.

This package provides an executor that runs steps in order and collects their
text output, plus a registry and command line runner for named orchestrations.
"""

from .context import ExecutionContext
from .exceptions import CommandTimeout, ExecutorError, ValidationError
from .executor import Executor, escape_shell_command
from .registry import (
    DefinitionRegistry,
    default_registry,
    definition,
)
from .cli import main

__version__ = "0.1.0"
__all__ = [
    "CommandTimeout",
    "DefinitionRegistry",
    "ExecutionContext",
    "Executor",
    "ExecutorError",
    "ValidationError",
    "default_registry",
    "definition",
    "escape_shell_command",
    "main",
]
