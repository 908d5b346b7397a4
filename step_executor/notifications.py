"""
Desktop notifications for finished orchestration runs.

The executor only needs something with a ``send(title, body)`` method.
``DesktopNotifier`` talks to the native notification tool of the host,
``RecordingNotifier`` keeps the messages in memory for tests.
"""
import logging
import platform
import shutil
import subprocess
from typing import List, Optional, Protocol, Tuple


class Notifier(Protocol):
    """Anything able to display a title/body notification."""

    def send(self, title: str, body: str) -> None:
        ...


class DesktopNotifier:
    """Sends notifications through notify-send (Linux) or osascript (macOS)."""

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def _build_command(self, title: str, body: str) -> Optional[List[str]]:
        if self.system == "Darwin":
            if not shutil.which("osascript"):
                return None
            script = f'display notification "{_quote(body)}" with title "{_quote(title)}"'
            return ["osascript", "-e", script]

        if shutil.which("notify-send"):
            return ["notify-send", title, body]
        return None

    def send(self, title: str, body: str) -> None:
        cmd = self._build_command(str(title), str(body))
        if cmd is None:
            logging.debug(f"No notification backend on {self.system}, dropping: {title}")
            return

        try:
            subprocess.run(
                cmd,
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logging.warning(f"Desktop notification failed: {e}")


class RecordingNotifier:
    """In-memory notifier."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send(self, title: str, body: str) -> None:
        self.sent.append((title, body))


def _quote(text: str) -> str:
    # AppleScript string literal
    return text.replace("\\", "\\\\").replace('"', '\\"')
