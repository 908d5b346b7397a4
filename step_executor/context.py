"""Execution context consulted by the executor."""
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CONSOLE_PREFIX = "python manage.py"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ExecutionContext:
    """Describes where the executor runs.

    Hosts pass this in explicitly instead of the executor probing
    global state, so tests can build whatever context they need.
    """
    running_in_console: bool = True
    running_unit_tests: bool = False
    base_path: Path = field(default_factory=Path.cwd)
    console_prefix: str = DEFAULT_CONSOLE_PREFIX

    def __post_init__(self):
        self.base_path = Path(self.base_path)
        if len(self.console_prefix.split()) != 2:
            raise ValueError(
                f"Console prefix must be an interpreter and an entry point: {self.console_prefix!r}"
            )

    @property
    def should_echo(self) -> bool:
        """Whether step output is mirrored to stdout as it is produced."""
        return self.running_in_console and not self.running_unit_tests

    @classmethod
    def from_env(cls, **overrides) -> "ExecutionContext":
        """Build a context from EXECUTOR_* environment variables."""
        stdin_is_tty = sys.stdin is not None and sys.stdin.isatty()
        values = {
            "running_in_console": _env_flag("EXECUTOR_RUNNING_IN_CONSOLE", stdin_is_tty),
            "running_unit_tests": _env_flag(
                "EXECUTOR_TESTING", "PYTEST_CURRENT_TEST" in os.environ
            ),
            "base_path": Path(os.environ.get("EXECUTOR_BASE_PATH") or Path.cwd()),
            "console_prefix": os.environ.get("EXECUTOR_CONSOLE_PREFIX", DEFAULT_CONSOLE_PREFIX),
        }
        values.update(overrides)
        return cls(**values)
