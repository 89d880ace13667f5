"""
Subprocess seam for the deployment CLI.

The orchestrator never calls subprocess directly; it hands a Command to a
CommandRunner. SubprocessRunner is the real implementation, tests inject a
scripted runner instead.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from mailtrack.tracking.errors import CommandLaunchFailed, DeployCancelled

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1
KILL_DRAIN_TIMEOUT = 5.0


@dataclass
class Command:
    """One invocation of an external tool."""

    args: list[str]
    cwd: Path | None = None
    stdin: str | None = field(default=None, repr=False)  # may carry a secret


@dataclass
class CommandResult:
    returncode: int
    output: str  # stdout and stderr, interleaved

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(ABC):
    @abstractmethod
    def resolve(self, tool: str) -> str | None:
        """Return the executable path for ``tool``, or None if not found."""

    @abstractmethod
    def run(self, command: Command, cancel: threading.Event | None = None) -> CommandResult:
        """Run ``command`` to completion (or cancellation)."""


class SubprocessRunner(CommandRunner):
    def resolve(self, tool: str) -> str | None:
        return shutil.which(tool)

    def run(self, command: Command, cancel: threading.Event | None = None) -> CommandResult:
        if cancel is not None and cancel.is_set():
            raise DeployCancelled(f"cancelled before running {command.args[0]}")

        logger.debug("Running %s (cwd=%s)", " ".join(command.args), command.cwd)
        try:
            proc = subprocess.Popen(
                command.args,
                cwd=str(command.cwd) if command.cwd else None,
                stdin=subprocess.PIPE if command.stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,  # own process group, so cancel reaches grandchildren
            )
        except OSError as e:
            raise CommandLaunchFailed(command.args, -1, str(e)) from e
        payload = command.stdin
        while True:
            try:
                output, _ = proc.communicate(input=payload, timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                payload = None  # input is only sent on the first call
                if cancel is not None and cancel.is_set():
                    _kill_group(proc)
                    raise DeployCancelled(f"cancelled while running {command.args[0]}") from None

        return CommandResult(returncode=proc.returncode, output=output or "")


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill ``proc`` and everything it spawned, then reap it."""
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()
    try:
        proc.communicate(timeout=KILL_DRAIN_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d did not exit after kill", proc.pid)
