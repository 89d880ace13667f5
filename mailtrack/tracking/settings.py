"""
Per-account tracking configuration.

Non-sensitive settings live in a JSON file under <config_dir>/tracking/.
The tracking and admin keys either sit in that file too, or, when
``secrets_in_keyring`` is set, live only in the secret vault and are filled
back in on load.

Usage:
    from mailtrack.tracking.settings import load_config, save_config
    cfg = load_config("me@example.com")
    if not cfg.enabled:
        ...
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import httpx

from mailtrack.config import get_config
from mailtrack.fsutil import atomic_write
from mailtrack.tracking.errors import ConfigError, InvalidWorkerURL, MissingAccount
from mailtrack.vault import SecretNotFound, SecretPurpose, SecretStore, open_default

logger = logging.getLogger(__name__)


@dataclass
class TrackingConfig:
    enabled: bool = False
    worker_url: str = ""
    secrets_in_keyring: bool = False
    tracking_key: str = field(default="", repr=False)
    admin_key: str = field(default="", repr=False)

    def validate(self) -> None:
        """An enabled config needs an absolute http(s) worker URL."""
        if not self.enabled:
            return
        try:
            url = httpx.URL(self.worker_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidWorkerURL(f"invalid worker url {self.worker_url!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidWorkerURL(
                f"worker url must be an absolute http(s) URL, got {self.worker_url!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "worker_url": self.worker_url,
            "secrets_in_keyring": self.secrets_in_keyring,
        }
        if self.tracking_key:
            data["tracking_key"] = self.tracking_key
        if self.admin_key:
            data["admin_key"] = self.admin_key
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackingConfig:
        return cls(
            enabled=bool(data.get("enabled", False)),
            worker_url=str(data.get("worker_url", "") or ""),
            secrets_in_keyring=bool(data.get("secrets_in_keyring", False)),
            tracking_key=str(data.get("tracking_key", "") or ""),
            admin_key=str(data.get("admin_key", "") or ""),
        )


# ─── Paths ───────────────────────────────────────────────────────────


def _account_slug(account: str) -> str:
    normalized = account.strip().lower()
    return base64.urlsafe_b64encode(normalized.encode("utf-8")).decode("ascii").rstrip("=")


def config_path(account: str) -> Path:
    """Current location: <config_dir>/tracking/<base64url(account)>.json."""
    if not account.strip():
        raise MissingAccount()
    return get_config().tracking_dir / f"{_account_slug(account)}.json"


def legacy_config_path(account: str) -> Path:
    """Location used by earlier releases, keyed by the raw account."""
    account = account.strip()
    if not account:
        raise MissingAccount()
    if "/" in account or "\\" in account or account in (".", ".."):
        raise ConfigError(f"invalid account for legacy config path: {account!r}")
    return get_config().config_dir / f"tracking-{account}.json"


# ─── Secret strategies ───────────────────────────────────────────────


class SecretPolicy(ABC):
    """Where the tracking/admin keys of a config are kept."""

    @abstractmethod
    def on_save(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        """Return the record to write to disk."""

    @abstractmethod
    def on_load(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        """Return the in-memory record for a config read from disk."""


class PlaintextSecrets(SecretPolicy):
    """Keys stay in the config record itself."""

    def on_save(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        return cfg

    def on_load(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        return cfg


class VaultSecrets(SecretPolicy):
    """Keys live in the secret vault and never touch the config file."""

    def __init__(self, vault: SecretStore | None = None) -> None:
        self._vault = vault

    @property
    def vault(self) -> SecretStore:
        if self._vault is None:
            self._vault = open_default()
        return self._vault

    def on_save(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        if cfg.tracking_key:
            self.vault.put(account, SecretPurpose.TRACKING_KEY, cfg.tracking_key)
        if cfg.admin_key:
            self.vault.put(account, SecretPurpose.ADMIN_KEY, cfg.admin_key)
        return replace(cfg, tracking_key="", admin_key="")

    def on_load(self, account: str, cfg: TrackingConfig) -> TrackingConfig:
        return replace(
            cfg,
            tracking_key=self._get(account, SecretPurpose.TRACKING_KEY),
            admin_key=self._get(account, SecretPurpose.ADMIN_KEY),
        )

    def _get(self, account: str, purpose: SecretPurpose) -> str:
        # Keys not stored yet (saved before save_secrets ran) load as empty.
        try:
            return self.vault.get(account, purpose)
        except SecretNotFound:
            logger.debug("No %s in vault for %s", purpose, account)
            return ""


def secret_policy(cfg: TrackingConfig, vault: SecretStore | None = None) -> SecretPolicy:
    if cfg.secrets_in_keyring:
        return VaultSecrets(vault)
    return PlaintextSecrets()


# ─── Load / save ─────────────────────────────────────────────────────


def _read(path: Path) -> TrackingConfig:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"parse tracking config {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"read tracking config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"parse tracking config {path}: expected a JSON object")
    return TrackingConfig.from_dict(data)


def load_config(account: str, *, vault: SecretStore | None = None) -> TrackingConfig:
    """Load the tracking config for ``account``.

    Falls back to the legacy location when the current file is absent; legacy
    files are returned as-is and not rewritten. A missing config is not an
    error and yields a disabled TrackingConfig.
    """
    path = config_path(account)
    if path.exists():
        cfg = _read(path)
        return secret_policy(cfg, vault).on_load(account, cfg)

    legacy = legacy_config_path(account)
    if legacy.exists():
        logger.info("Loading tracking config from legacy path %s", legacy)
        return _read(legacy)

    return TrackingConfig()


def save_config(
    account: str, cfg: TrackingConfig, *, vault: SecretStore | None = None
) -> Path:
    """Validate and write ``cfg``; keys go to the vault when secrets_in_keyring is set."""
    if not account.strip():
        raise MissingAccount()
    cfg.validate()

    path = config_path(account)
    on_disk = secret_policy(cfg, vault).on_save(account, cfg)
    payload = json.dumps(on_disk.to_dict(), indent=2) + "\n"
    atomic_write(path, payload.encode("utf-8"))
    logger.info("Saved tracking config for %s to %s", account, path)
    return path


def save_secrets(
    account: str,
    tracking_key: str,
    admin_key: str,
    *,
    vault: SecretStore | None = None,
) -> None:
    """Store both keys in the vault without touching the config file."""
    if not account.strip():
        raise MissingAccount()
    store = vault or open_default()
    store.put(account, SecretPurpose.TRACKING_KEY, tracking_key)
    store.put(account, SecretPurpose.ADMIN_KEY, admin_key)
