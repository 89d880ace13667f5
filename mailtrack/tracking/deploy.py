"""
Provision the tracking worker: D1 database, wrangler.toml, schema, secrets, deploy.

Usage:
    from mailtrack.tracking.deploy import DeployOptions, deploy_worker
    db_id = deploy_worker(DeployOptions(
        worker_dir=Path("worker"),
        worker_name="mailtrack-email-tracker",
        database_name="mailtrack-email-tracker",
        tracking_key=tracking_key,
        admin_key=admin_key,
    ))

Every step is safe to re-run: an existing database is looked up instead of
created, descriptor rewrites are idempotent, and secret put / deploy
overwrite whatever the worker had. Nothing is rolled back on failure.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from mailtrack.config import get_config
from mailtrack.tracking.descriptor import (
    SCHEMA_FILE,
    descriptor_path,
    parse_database_id,
    write_descriptor,
)
from mailtrack.tracking.errors import (
    CommandFailed,
    ConfigError,
    DatabaseProvisioningFailed,
    DeployCancelled,
    DeployFailed,
    DescriptorMissing,
    SchemaApplyFailed,
    SecretInstallFailed,
    ToolNotFound,
)
from mailtrack.tracking.names import default_worker_name, sanitize_worker_name
from mailtrack.tracking.runner import (
    Command,
    CommandResult,
    CommandRunner,
    SubprocessRunner,
)

logger = logging.getLogger(__name__)

TRACKING_KEY_SECRET = "TRACKING_KEY"
ADMIN_KEY_SECRET = "ADMIN_KEY"


@dataclass
class DeployOptions:
    worker_dir: Path
    worker_name: str
    database_name: str
    tracking_key: str = field(repr=False)
    admin_key: str = field(repr=False)

    @property
    def resolved_worker_name(self) -> str:
        """Sanitized worker name, or the default when nothing usable remains."""
        return sanitize_worker_name(self.worker_name) or default_worker_name(
            self.database_name
        )

    def validate(self) -> None:
        if not self.database_name.strip():
            raise ConfigError("missing database name")
        if not self.tracking_key or not self.admin_key:
            raise ConfigError("tracking and admin keys are required")


def _launch(
    runner: CommandRunner, command: Command, cancel: threading.Event | None
) -> CommandResult:
    if cancel is not None and cancel.is_set():
        raise DeployCancelled(f"cancelled before {' '.join(command.args[1:3])}")
    return runner.run(command, cancel)


def _run(
    runner: CommandRunner,
    args: list[str],
    cwd: Path,
    cancel: threading.Event | None,
    error: type[CommandFailed],
    stdin: str | None = None,
) -> str:
    result = _launch(runner, Command(args=args, cwd=cwd, stdin=stdin), cancel)
    if not result.ok:
        raise error(args, result.returncode, result.output)
    return result.output


def ensure_database(
    worker_dir: Path | str,
    database_name: str,
    *,
    runner: CommandRunner | None = None,
    cancel: threading.Event | None = None,
    executable: str | None = None,
) -> str:
    """Create the D1 database, or find the existing one. Returns its id.

    Any create failure falls through to ``d1 info``; quota or auth errors
    look the same as "already exists" here, so both outputs are kept on
    DatabaseProvisioningFailed.
    """
    runner = runner or SubprocessRunner()
    exe = executable or _resolve_tool(runner)
    cwd = Path(worker_dir)

    create = _launch(runner, Command(args=[exe, "d1", "create", database_name], cwd=cwd), cancel)
    if create.ok:
        database_id = parse_database_id(create.output)
        if database_id:
            logger.info("Created D1 database %s (%s)", database_name, database_id)
            return database_id
        logger.warning("d1 create %s printed no database id; trying d1 info", database_name)
    else:
        logger.warning(
            "d1 create %s failed (exit %d); looking up existing database",
            database_name,
            create.returncode,
        )

    info = _launch(runner, Command(args=[exe, "d1", "info", database_name], cwd=cwd), cancel)
    if info.ok:
        database_id = parse_database_id(info.output)
        if database_id:
            logger.info("Using existing D1 database %s (%s)", database_name, database_id)
            return database_id

    raise DatabaseProvisioningFailed(database_name, create.output, info.output)


def _resolve_tool(runner: CommandRunner) -> str:
    tool = get_config().wrangler
    exe = runner.resolve(tool)
    if not exe:
        raise ToolNotFound(tool)
    return exe


def deploy_worker(
    options: DeployOptions,
    *,
    runner: CommandRunner | None = None,
    cancel: threading.Event | None = None,
) -> str:
    """Provision and deploy the tracking worker. Returns the D1 database id.

    Raises:
        ToolNotFound: wrangler is not on PATH (nothing is run).
        DescriptorMissing: worker_dir has no wrangler.toml.
        DatabaseProvisioningFailed, SchemaApplyFailed, SecretInstallFailed,
        DeployFailed: a wrangler step failed; later steps are skipped.
        CommandLaunchFailed: wrangler exists but could not be started.
        DeployCancelled: ``cancel`` was set.
    """
    runner = runner or SubprocessRunner()
    exe = _resolve_tool(runner)

    worker_dir = Path(options.worker_dir)
    if not descriptor_path(worker_dir).is_file():
        raise DescriptorMissing(descriptor_path(worker_dir))
    options.validate()

    worker_name = options.resolved_worker_name
    database_id = ensure_database(
        worker_dir, options.database_name, runner=runner, cancel=cancel, executable=exe
    )
    write_descriptor(worker_dir, worker_name, options.database_name, database_id)

    if (worker_dir / SCHEMA_FILE).is_file():
        logger.info("Applying %s to %s", SCHEMA_FILE, options.database_name)
        _run(
            runner,
            [exe, "d1", "execute", options.database_name, f"--file={SCHEMA_FILE}", "--remote"],
            worker_dir,
            cancel,
            SchemaApplyFailed,
        )

    for secret_name, value in (
        (TRACKING_KEY_SECRET, options.tracking_key),
        (ADMIN_KEY_SECRET, options.admin_key),
    ):
        logger.info("Installing worker secret %s", secret_name)
        _run(
            runner,
            [exe, "secret", "put", secret_name],
            worker_dir,
            cancel,
            SecretInstallFailed,
            stdin=value,
        )

    logger.info("Deploying worker %s", worker_name)
    _run(runner, [exe, "deploy"], worker_dir, cancel, DeployFailed)
    return database_id
