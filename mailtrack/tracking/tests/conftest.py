"""Shared fixtures for tracking tests."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from mailtrack.tracking.runner import Command, CommandResult, CommandRunner

WRANGLER_TOML = 'name = "old"\ndatabase_name = "old"\ndatabase_id = "old"\n'

# Mimics the wrangler subcommands the deploy flow uses. Every invocation is
# appended to $WRANGLER_LOG; stdin of "secret put" is recorded too.
WRANGLER_STUB = """#!/bin/sh
set -e
echo "$*" >> "${WRANGLER_LOG:-/dev/null}"
cmd="$1"
shift
case "$cmd" in
  d1)
    sub="$1"
    shift
    case "$sub" in
      create)
        if [ "${WRANGLER_CREATE_FAIL:-}" = "1" ]; then
          echo "create failed: database already exists" >&2
          exit 1
        fi
        echo 'database_id = "db-create"'
        exit 0
        ;;
      info)
        if [ "${WRANGLER_INFO_FAIL:-}" = "1" ]; then
          echo "info failed: not found" >&2
          exit 1
        fi
        echo 'database_id = "db-info"'
        exit 0
        ;;
      execute)
        exit 0
        ;;
    esac
    ;;
  secret)
    sub="$1"
    shift
    if [ "$sub" = "put" ]; then
      value="$(cat)"
      echo "stdin $1=$value" >> "${WRANGLER_LOG:-/dev/null}"
      exit 0
    fi
    ;;
  deploy)
    if [ "${WRANGLER_DEPLOY_FAIL:-}" = "1" ]; then
      echo "deploy exploded" >&2
      exit 1
    fi
    exit 0
    ;;
esac
echo "unexpected args" >&2
exit 2
"""


@pytest.fixture
def worker_dir(tmp_path: Path) -> Path:
    """A worker directory with wrangler.toml and an empty schema.sql."""
    d = tmp_path / "worker"
    d.mkdir()
    (d / "wrangler.toml").write_text(WRANGLER_TOML)
    (d / "schema.sql").write_text("")
    return d


@pytest.fixture
def wrangler_stub(tmp_path: Path, monkeypatch) -> Path:
    """Install the stub as the only executable on PATH. Returns the log file."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    stub = bin_dir / "wrangler"
    stub.write_text(WRANGLER_STUB)
    stub.chmod(stub.stat().st_mode | stat.S_IXUSR)
    log = tmp_path / "wrangler.log"
    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")
    monkeypatch.setenv("WRANGLER_LOG", str(log))
    return log


class ScriptedRunner(CommandRunner):
    """In-process runner answering commands from a script of canned results."""

    def __init__(self, responses: dict[tuple[str, ...], CommandResult] | None = None):
        self.responses = responses or {}
        self.calls: list[Command] = []
        self.available = True

    def resolve(self, tool: str) -> str | None:
        return f"/fake/bin/{tool}" if self.available else None

    def run(self, command: Command, cancel=None) -> CommandResult:
        self.calls.append(command)
        sub = tuple(command.args[1:3])
        for prefix, result in self.responses.items():
            if sub[: len(prefix)] == prefix:
                return result
        return CommandResult(returncode=0, output="")

    @property
    def subcommands(self) -> list[tuple[str, ...]]:
        return [tuple(c.args[1:3]) for c in self.calls]


@pytest.fixture
def scripted_runner() -> ScriptedRunner:
    return ScriptedRunner(
        {("d1", "create"): CommandResult(0, 'database_id = "db-create"\n')}
    )
