"""Tests for the tracking worker deploy flow."""

import sys
import threading
from pathlib import Path

import pytest

from mailtrack.tracking.deploy import DeployOptions, deploy_worker, ensure_database
from mailtrack.tracking.errors import (
    CommandFailed,
    CommandLaunchFailed,
    ConfigError,
    DatabaseProvisioningFailed,
    DeployCancelled,
    DeployFailed,
    DescriptorMissing,
    SchemaApplyFailed,
    SecretInstallFailed,
    ToolNotFound,
)
from mailtrack.tracking.runner import CommandResult

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="wrangler stub uses shell script")


def _options(worker_dir: Path, **overrides) -> DeployOptions:
    values = dict(
        worker_dir=worker_dir,
        worker_name="worker",
        database_name="db",
        tracking_key="track",
        admin_key="admin",
    )
    values.update(overrides)
    return DeployOptions(**values)


class TestDeployOptions:
    def test_worker_name_sanitized(self, tmp_path: Path):
        assert _options(tmp_path, worker_name="My Worker!").resolved_worker_name == "my-worker"

    def test_unusable_worker_name_uses_default(self, tmp_path: Path):
        opts = _options(tmp_path, worker_name="___", database_name="tracker")
        assert opts.resolved_worker_name == "mailtrack-email-tracker-tracker"

    def test_keys_hidden_from_repr(self, tmp_path: Path):
        text = repr(_options(tmp_path, tracking_key="t-secret", admin_key="a-secret"))
        assert "t-secret" not in text
        assert "a-secret" not in text

    def test_validate_requires_database(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="database"):
            _options(tmp_path, database_name=" ").validate()


@posix_only
class TestDeployWorkerWithStub:
    def test_missing_wrangler(self, worker_dir: Path, monkeypatch):
        monkeypatch.setenv("PATH", str(worker_dir))
        with pytest.raises(ToolNotFound):
            deploy_worker(_options(worker_dir))

    def test_missing_descriptor(self, tmp_path: Path, wrangler_stub: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(DescriptorMissing):
            deploy_worker(_options(empty))
        assert not wrangler_stub.exists()

    def test_success(self, worker_dir: Path, wrangler_stub: Path):
        assert deploy_worker(_options(worker_dir)) == "db-create"

        content = (worker_dir / "wrangler.toml").read_text()
        assert 'name = "worker"' in content
        assert 'database_name = "db"' in content
        assert 'database_id = "db-create"' in content

        log = wrangler_stub.read_text().splitlines()
        assert log[0] == "d1 create db"
        assert log[1] == "d1 execute db --file=schema.sql --remote"
        assert "secret put TRACKING_KEY" in log
        assert "stdin TRACKING_KEY=track" in log
        assert "stdin ADMIN_KEY=admin" in log
        assert log[-1] == "deploy"

    def test_secrets_not_on_command_line(self, worker_dir: Path, wrangler_stub: Path):
        deploy_worker(_options(worker_dir, tracking_key="tk-123", admin_key="ak-456"))
        invocations = [
            line for line in wrangler_stub.read_text().splitlines()
            if not line.startswith("stdin ")
        ]
        assert not any("tk-123" in line or "ak-456" in line for line in invocations)

    def test_create_fails_falls_back_to_info(
        self, worker_dir: Path, wrangler_stub: Path, monkeypatch
    ):
        monkeypatch.setenv("WRANGLER_CREATE_FAIL", "1")
        assert deploy_worker(_options(worker_dir)) == "db-info"
        assert 'database_id = "db-info"' in (worker_dir / "wrangler.toml").read_text()

    def test_without_schema_skips_execute(self, worker_dir: Path, wrangler_stub: Path):
        (worker_dir / "schema.sql").unlink()
        deploy_worker(_options(worker_dir))
        assert not any(line.startswith("d1 execute") for line in wrangler_stub.read_text().splitlines())

    def test_deploy_failure_carries_output(
        self, worker_dir: Path, wrangler_stub: Path, monkeypatch
    ):
        monkeypatch.setenv("WRANGLER_DEPLOY_FAIL", "1")
        with pytest.raises(DeployFailed) as exc_info:
            deploy_worker(_options(worker_dir))
        assert exc_info.value.returncode == 1
        assert "deploy exploded" in exc_info.value.output
        assert "deploy exploded" in str(exc_info.value)

    def test_rerun_is_safe(self, worker_dir: Path, wrangler_stub: Path, monkeypatch):
        assert deploy_worker(_options(worker_dir)) == "db-create"
        monkeypatch.setenv("WRANGLER_CREATE_FAIL", "1")
        assert deploy_worker(_options(worker_dir)) == "db-info"

    def test_unrunnable_wrangler(self, worker_dir: Path, tmp_path: Path, monkeypatch):
        bin_dir = tmp_path / "badbin"
        bin_dir.mkdir()
        broken = bin_dir / "wrangler"
        broken.write_bytes(b"\x00\x01\x02 not an executable")
        broken.chmod(0o755)
        monkeypatch.setenv("PATH", str(bin_dir))
        before = (worker_dir / "wrangler.toml").read_text()

        with pytest.raises(CommandLaunchFailed) as exc_info:
            deploy_worker(_options(worker_dir))
        assert isinstance(exc_info.value, CommandFailed)
        assert exc_info.value.returncode == -1
        assert "launch failed" in str(exc_info.value)
        assert (worker_dir / "wrangler.toml").read_text() == before


@posix_only
class TestEnsureDatabaseWithStub:
    def test_create(self, worker_dir: Path, wrangler_stub: Path):
        assert ensure_database(worker_dir, "db") == "db-create"

    def test_info_fallback(self, worker_dir: Path, wrangler_stub: Path, monkeypatch):
        monkeypatch.setenv("WRANGLER_CREATE_FAIL", "1")
        assert ensure_database(worker_dir, "db") == "db-info"

    def test_both_fail_keeps_both_outputs(
        self, worker_dir: Path, wrangler_stub: Path, monkeypatch
    ):
        monkeypatch.setenv("WRANGLER_CREATE_FAIL", "1")
        monkeypatch.setenv("WRANGLER_INFO_FAIL", "1")
        with pytest.raises(DatabaseProvisioningFailed) as exc_info:
            ensure_database(worker_dir, "db")
        assert "already exists" in exc_info.value.create_output
        assert "not found" in exc_info.value.info_output
        assert "already exists" in str(exc_info.value)


class TestDeployWorkerScripted:
    def test_tool_not_found_runs_nothing(self, worker_dir: Path, scripted_runner):
        scripted_runner.available = False
        with pytest.raises(ToolNotFound):
            deploy_worker(_options(worker_dir), runner=scripted_runner)
        assert scripted_runner.calls == []

    def test_step_order(self, worker_dir: Path, scripted_runner):
        assert deploy_worker(_options(worker_dir), runner=scripted_runner) == "db-create"
        assert scripted_runner.subcommands == [
            ("d1", "create"),
            ("d1", "execute"),
            ("secret", "put"),
            ("secret", "put"),
            ("deploy",),
        ]
        assert all(c.cwd == worker_dir for c in scripted_runner.calls)
        secret_calls = [c for c in scripted_runner.calls if c.args[1] == "secret"]
        assert [c.stdin for c in secret_calls] == ["track", "admin"]

    def test_create_output_without_id_uses_info(self, worker_dir: Path, scripted_runner):
        scripted_runner.responses = {
            ("d1", "create"): CommandResult(0, "created, but no id printed"),
            ("d1", "info"): CommandResult(0, "Database ID: 4242"),
        }
        assert deploy_worker(_options(worker_dir), runner=scripted_runner) == "4242"

    def test_schema_failure_aborts(self, worker_dir: Path, scripted_runner):
        scripted_runner.responses[("d1", "execute")] = CommandResult(1, "syntax error")
        with pytest.raises(SchemaApplyFailed, match="syntax error"):
            deploy_worker(_options(worker_dir), runner=scripted_runner)
        assert ("secret", "put") not in scripted_runner.subcommands

    def test_secret_failure_skips_deploy(self, worker_dir: Path, scripted_runner):
        scripted_runner.responses[("secret", "put")] = CommandResult(1, "auth required")
        with pytest.raises(SecretInstallFailed) as exc_info:
            deploy_worker(_options(worker_dir), runner=scripted_runner)
        assert isinstance(exc_info.value, CommandFailed)
        assert "track" not in str(exc_info.value)
        assert ("deploy",) not in scripted_runner.subcommands
        # earlier side effects stay in place
        assert 'database_id = "db-create"' in (worker_dir / "wrangler.toml").read_text()

    def test_cancelled_before_first_step(self, worker_dir: Path, scripted_runner):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(DeployCancelled):
            deploy_worker(_options(worker_dir), runner=scripted_runner, cancel=cancel)
        assert scripted_runner.calls == []

    def test_custom_wrangler_name(self, worker_dir: Path, scripted_runner, monkeypatch):
        from mailtrack.config import reset_config

        monkeypatch.setenv("MAILTRACK_WRANGLER", "npx-wrangler")
        reset_config()
        deploy_worker(_options(worker_dir), runner=scripted_runner)
        assert scripted_runner.calls[0].args[0] == "/fake/bin/npx-wrangler"
