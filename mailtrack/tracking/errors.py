"""Errors raised while provisioning the tracking worker or persisting its config."""

from __future__ import annotations

from mailtrack.errors import MailtrackError, MissingAccount


class TrackingError(MailtrackError):
    """Base class for tracking errors."""


class ConfigError(TrackingError):
    pass


class InvalidWorkerURL(ConfigError, ValueError):
    pass


class ToolNotFound(TrackingError, FileNotFoundError):
    """The deployment CLI is not on PATH."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} not found on PATH (install it with: npm install -g {tool})")
        self.tool = tool


class DescriptorNotFound(TrackingError, FileNotFoundError):
    """The deployment descriptor file does not exist."""

    def __init__(self, path) -> None:
        super().__init__(f"worker config not found: {path}")
        self.path = path


# Raised by deploy_worker when the working directory has no descriptor.
DescriptorMissing = DescriptorNotFound


class DeployCancelled(TrackingError):
    pass


class CommandFailed(TrackingError):
    """A deployment CLI invocation exited non-zero.

    Carries the command line, exit status and the combined stdout+stderr so
    callers can show diagnostics without re-running the tool.
    """

    step = "command"

    def __init__(self, command: list[str], returncode: int, output: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(self._message())

    def _message(self) -> str:
        msg = f"{self.step} failed: {' '.join(self.command)} exited {self.returncode}"
        output = self.output.strip()
        if output:
            msg += f": {output}"
        return msg


class CommandLaunchFailed(CommandFailed):
    """The CLI could not be started at all (bad binary, permissions)."""

    step = "launch"


class SchemaApplyFailed(CommandFailed):
    step = "apply schema"


class SecretInstallFailed(CommandFailed):
    step = "install secret"


class DeployFailed(CommandFailed):
    step = "deploy"


class DatabaseProvisioningFailed(TrackingError):
    """Neither create nor info produced a database id. Keeps both outputs."""

    def __init__(self, database: str, create_output: str, info_output: str) -> None:
        self.database = database
        self.create_output = create_output
        self.info_output = info_output
        super().__init__(
            f"could not determine database id for {database!r}\n"
            f"create output:\n{create_output.strip()}\n"
            f"info output:\n{info_output.strip()}"
        )


__all__ = [
    "CommandFailed",
    "CommandLaunchFailed",
    "ConfigError",
    "DatabaseProvisioningFailed",
    "DeployCancelled",
    "DeployFailed",
    "DescriptorMissing",
    "DescriptorNotFound",
    "InvalidWorkerURL",
    "MissingAccount",
    "SchemaApplyFailed",
    "SecretInstallFailed",
    "ToolNotFound",
    "TrackingError",
]
