"""
The step executor: runs console commands, external commands, in-process
functions and HTTP pings one after another, collecting their text output.
"""
import codecs
import logging
import os
import selectors
import signal
import subprocess
import sys
import time
from typing import Callable, Dict, List, Optional

from .context import ExecutionContext
from .exceptions import CommandTimeout, ValidationError
from .http_client import HttpClient, RequestsHttpClient
from .notifications import DesktopNotifier, Notifier

DEFAULT_TIMEOUT = 60.0
INTERACTIVE_COMPLETED = " Interactive command completed"
INTERACTIVE_FAILED = " Interactive command failed"

_POLL_INTERVAL = 0.05
_DRAIN_GRACE = 0.2
_READ_SIZE = 65536

_SHELL_METACHARACTERS = frozenset("#&;`|*?~<>^()[]{}$\\\n\xff")

Definition = Callable[["Executor"], "Executor"]


def escape_shell_command(command: str) -> str:
    """Backslash-escape shell metacharacters in a command line.

    Quotes are kept when they come in pairs and escaped otherwise. This
    keeps a command line from turning into several commands; it is not a
    security boundary, and legitimate shell syntax is neutralized too.
    """
    escaped = []
    open_quote = None
    for i, char in enumerate(command):
        if char in ("'", '"'):
            if open_quote is None and char in command[i + 1:]:
                open_quote = char
            elif open_quote == char:
                open_quote = None
            else:
                escaped.append("\\")
        elif char in _SHELL_METACHARACTERS:
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def _normalize_timeout(timeout: Optional[float]) -> Optional[float]:
    # 0 means "no timeout"
    if timeout is None:
        return None
    timeout = float(timeout)
    if timeout < 0:
        raise ValueError(f"Timeout must be a positive number or None, got {timeout}")
    return timeout or None


class Executor:
    """Runs orchestration steps in call order and accumulates their output.

    Every step method returns the executor itself, so steps chain::

        Executor().run_console("migrate").run_external("npm run build").get_output()

    Orchestrations are plain functions taking and returning an executor,
    see ``run`` and ``step_executor.registry``.
    """

    def __init__(
        self,
        context: Optional[ExecutionContext] = None,
        notifier: Optional[Notifier] = None,
        http_client: Optional[HttpClient] = None,
    ):
        self.context = context or ExecutionContext.from_env()
        self.notifier = notifier or DesktopNotifier()
        self.http_client = http_client or RequestsHttpClient()
        self._output = ""

    def run(self, definition: Definition) -> "Executor":
        """Run an orchestration definition against this executor."""
        definition(self)
        return self

    def run_console(
        self, command: str, interactive: bool = False, timeout: Optional[float] = DEFAULT_TIMEOUT
    ) -> "Executor":
        """Run a subcommand of the host console application."""
        self._validate(command, interactive)

        command = f"{self.context.console_prefix} {command}"
        self._run_command(command, interactive, timeout)
        return self

    def run_external(
        self, command: str, interactive: bool = False, timeout: Optional[float] = DEFAULT_TIMEOUT
    ) -> "Executor":
        """Run a command verbatim."""
        self._validate(command, interactive)

        self._run_command(command, interactive, timeout)
        return self

    def run_closure(self, closure: Callable[[], Optional[str]]) -> "Executor":
        """Call ``closure`` and append what it returns to the output."""
        logging.info(f"Executing: {getattr(closure, '__name__', repr(closure))}")
        output = closure()
        output = "" if output is None else str(output)

        if self.context.should_echo:
            sys.stdout.write(output)
            sys.stdout.flush()

        self._append_output(output)
        return self

    def ping(self, url: str, headers: Optional[Dict[str, str]] = None) -> "Executor":
        """GET ``url``. The response is not added to the output."""
        logging.info(f"Pinging: {url}")
        self.http_client.get(url, headers=dict(headers or {}))
        return self

    def simple_desktop_notification(self, title: str = "Executor", body: str = "Executor") -> "Executor":
        self.notifier.send(title, body)
        return self

    def complete_notification(self, name: Optional[str] = None) -> "Executor":
        """Announce that an orchestration run has finished."""
        return self.simple_desktop_notification("Executor", f"{name or 'Executor'} has completed.")

    def get_output(self) -> str:
        return self._output

    def reset_output(self) -> "Executor":
        self._output = ""
        return self

    def _append_output(self, output: str) -> None:
        self._output = self._output + output

    def _validate(self, command: str, interactive: bool) -> bool:
        """Interactive commands need a terminal the user can type into."""
        if interactive and not self.context.running_in_console:
            logging.error(f"Refusing interactive command outside the console: {command}")
            raise ValidationError("Interactive commands can only be run in the console.")
        return True

    def _run_command(self, command: str, interactive: bool, timeout: Optional[float]) -> None:
        logging.info(f"Executing: {command}")

        if interactive:
            self._run_interactive_command(command)
            return

        returncode, stdout, stderr = self._run_process(command, _normalize_timeout(timeout))

        if returncode == 0:
            logging.info(f"✓ Success: {command}")
            self._append_output(stdout)
        else:
            logging.warning(f"✗ Failed: {command} (exit code: {returncode})")
            self._append_output(stderr)

    def _run_interactive_command(self, command: str) -> None:
        status = subprocess.call(escape_shell_command(command), shell=True)
        logging.debug(f"  exit code: {status}")

        if status == 0:
            self._append_output(INTERACTIVE_COMPLETED)
        else:
            self._append_output(INTERACTIVE_FAILED)

    def _run_process(self, command: str, timeout: Optional[float]) -> tuple[int, str, str]:
        """Run ``command`` without a shell and return (exit code, stdout, stderr)."""
        # Plain whitespace split: arguments cannot contain spaces.
        cmd_parts = command.split()
        if not cmd_parts:
            raise ValueError("Cannot run an empty command")
        logging.debug(f"  Command: {cmd_parts} (cwd: {self.context.base_path}, timeout: {timeout})")

        try:
            process = subprocess.Popen(
                cmd_parts,
                cwd=str(self.context.base_path),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=False,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            if e.filename == str(self.context.base_path):
                raise
            # A shell would report this on stderr with status 127
            logging.warning(f"✗ Command not found: {cmd_parts[0]}")
            return 127, "", f"{cmd_parts[0]}: command not found\n"

        with process.stdout, process.stderr:
            returncode, stdout_text, stderr_text = self._collect(process, command, timeout)

        if stdout_text:
            logging.debug(f"  stdout: {stdout_text.strip()}")
        if stderr_text:
            logging.debug(f"  stderr: {stderr_text.strip()}")
        return returncode, stdout_text, stderr_text

    def _collect(self, process: subprocess.Popen, command: str, timeout: Optional[float]) -> tuple[int, str, str]:
        """Read both pipes until the child exits, echoing chunks as they arrive.

        Background jobs started by the child may keep the pipes open after
        it exits, so reading stops ``_DRAIN_GRACE`` seconds after the exit.
        """
        streams = {process.stdout: "stdout", process.stderr: "stderr"}
        decoders = {name: codecs.getincrementaldecoder("utf-8")(errors="replace") for name in streams.values()}
        chunks: Dict[str, List[str]] = {name: [] for name in streams.values()}
        deadline = None if timeout is None else time.monotonic() + timeout
        drain_until = None

        with selectors.DefaultSelector() as selector:
            for stream in streams:
                selector.register(stream, selectors.EVENT_READ)

            while selector.get_map():
                now = time.monotonic()
                if drain_until is None and process.poll() is not None:
                    drain_until = now + _DRAIN_GRACE
                if drain_until is not None:
                    if now >= drain_until:
                        break
                    wait = drain_until - now
                elif deadline is not None:
                    if now >= deadline:
                        self._timed_out(process, command, timeout)
                    wait = min(_POLL_INTERVAL, deadline - now)
                else:
                    wait = _POLL_INTERVAL

                for key, _ in selector.select(wait):
                    data = os.read(key.fd, _READ_SIZE)
                    if not data:
                        selector.unregister(key.fileobj)
                        continue
                    name = streams[key.fileobj]
                    self._echo_chunk(chunks[name], decoders[name].decode(data))

        # The pipes can close before the child exits
        try:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
            returncode = process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            self._timed_out(process, command, timeout)

        for name, decoder in decoders.items():
            self._echo_chunk(chunks[name], decoder.decode(b"", final=True))
        return returncode, "".join(chunks["stdout"]), "".join(chunks["stderr"])

    def _echo_chunk(self, chunks: List[str], text: str) -> None:
        if not text:
            return
        chunks.append(text)
        if self.context.should_echo:
            sys.stdout.write(text)
            sys.stdout.flush()

    def _timed_out(self, process: subprocess.Popen, command: str, timeout: Optional[float]) -> None:
        """Kill the child with everything it started, then raise CommandTimeout."""
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            process.kill()
        process.wait()
        logging.error(f"✗ Timed out after {timeout}s: {command}")
        raise CommandTimeout(command, timeout)
