#!/usr/bin/env python3
"""
Tests for the execution context, notifiers and HTTP clients.
Run with: pytest test_collaborators.py -v
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent))

from step_executor import ExecutionContext
from step_executor.http_client import RecordingHttpClient, RequestsHttpClient
from step_executor.notifications import DesktopNotifier, RecordingNotifier


class TestExecutionContext:
    """Tests for building the execution context."""

    def test_defaults(self):
        context = ExecutionContext()

        assert context.running_in_console is True
        assert context.running_unit_tests is False
        assert context.base_path == Path.cwd()
        assert context.console_prefix == "python manage.py"

    def test_should_echo(self):
        assert ExecutionContext(running_in_console=True, running_unit_tests=False).should_echo
        assert not ExecutionContext(running_in_console=True, running_unit_tests=True).should_echo
        assert not ExecutionContext(running_in_console=False, running_unit_tests=False).should_echo

    def test_base_path_is_converted(self, tmp_path):
        context = ExecutionContext(base_path=str(tmp_path))

        assert context.base_path == tmp_path

    @pytest.mark.parametrize("prefix", ["python", "python manage.py extra", ""])
    def test_console_prefix_needs_two_tokens(self, prefix):
        with pytest.raises(ValueError):
            ExecutionContext(console_prefix=prefix)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EXECUTOR_RUNNING_IN_CONSOLE", "false")
        monkeypatch.setenv("EXECUTOR_TESTING", "0")
        monkeypatch.setenv("EXECUTOR_BASE_PATH", str(tmp_path))
        monkeypatch.setenv("EXECUTOR_CONSOLE_PREFIX", "python3 app.py")

        context = ExecutionContext.from_env()

        assert context.running_in_console is False
        assert context.running_unit_tests is False
        assert context.base_path == tmp_path
        assert context.console_prefix == "python3 app.py"

    def test_from_env_detects_pytest(self, monkeypatch):
        monkeypatch.delenv("EXECUTOR_TESTING", raising=False)

        assert ExecutionContext.from_env().running_unit_tests is True

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("EXECUTOR_RUNNING_IN_CONSOLE", "false")

        context = ExecutionContext.from_env(running_in_console=True)

        assert context.running_in_console is True


class TestDesktopNotifier:
    """Tests for native notification backends."""

    def test_linux_uses_notify_send(self):
        with patch("step_executor.notifications.shutil.which", return_value="/usr/bin/notify-send"), \
                patch("step_executor.notifications.subprocess.run") as run:
            DesktopNotifier(system="Linux").send("Title", "Body")

        assert run.call_args[0][0] == ["notify-send", "Title", "Body"]

    def test_macos_uses_osascript(self):
        with patch("step_executor.notifications.shutil.which", return_value="/usr/bin/osascript"), \
                patch("step_executor.notifications.subprocess.run") as run:
            DesktopNotifier(system="Darwin").send('Say "hi"', "Body")

        cmd = run.call_args[0][0]
        assert cmd[:2] == ["osascript", "-e"]
        assert cmd[2] == 'display notification "Body" with title "Say \\"hi\\""'

    def test_missing_backend_is_skipped(self):
        with patch("step_executor.notifications.shutil.which", return_value=None), \
                patch("step_executor.notifications.subprocess.run") as run:
            DesktopNotifier(system="Linux").send("Title", "Body")

        run.assert_not_called()

    def test_backend_failure_is_not_raised(self):
        with patch("step_executor.notifications.shutil.which", return_value="/usr/bin/notify-send"), \
                patch("step_executor.notifications.subprocess.run", side_effect=OSError("broken")):
            DesktopNotifier(system="Linux").send("Title", "Body")

    def test_recording_notifier(self):
        notifier = RecordingNotifier()
        notifier.send("a", "b")

        assert notifier.sent == [("a", "b")]


class TestHttpClients:
    """Tests for the HTTP clients used by ping."""

    def test_requests_client_get(self):
        session = MagicMock()
        client = RequestsHttpClient(session=session, timeout=5)

        client.get("https://example.com", {"Accept": "text/plain"})

        session.get.assert_called_once_with(
            "https://example.com", headers={"Accept": "text/plain"}, timeout=5
        )
        session.get.return_value.raise_for_status.assert_called_once()

    def test_requests_client_raises_on_error_status(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        client = RequestsHttpClient(session=session)

        with pytest.raises(requests.HTTPError):
            client.get("https://example.com")

    def test_requests_client_connection_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(requests.ConnectionError):
            RequestsHttpClient(session=session).get("https://example.com")

    def test_recording_client(self):
        client = RecordingHttpClient()
        client.get("https://example.com", {"A": "1"})

        assert client.requests == [("https://example.com", {"A": "1"})]
