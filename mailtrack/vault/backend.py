"""Secret backend selection: environment, then app config.json, then default."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from mailtrack.config import Config, get_config
from mailtrack.vault.crypto import get_master_key
from mailtrack.vault.store import FileVault, MemoryVault, SecretStore, VaultError

logger = logging.getLogger(__name__)

BACKEND_AUTO = "auto"
BACKEND_FILE = "file"
BACKEND_MEMORY = "memory"
BACKENDS = (BACKEND_AUTO, BACKEND_FILE, BACKEND_MEMORY)

SOURCE_ENV = "env"
SOURCE_CONFIG = "config"
SOURCE_DEFAULT = "default"

# One process-wide memory vault so separate open_default() calls share items.
_memory_vault: MemoryVault | None = None


class InvalidKeyringBackend(VaultError, ValueError):
    pass


@dataclass(frozen=True)
class BackendInfo:
    value: str
    source: str


def _normalize(value: str) -> str:
    return value.strip().lower()


def read_app_config(cfg: Config | None = None) -> dict:
    """Read the app-level config.json. Missing file = empty dict."""
    cfg = cfg or get_config()
    path = cfg.app_config_path
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise VaultError(f"parse config {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def resolve_backend(cfg: Config | None = None) -> BackendInfo:
    """Resolve which secret backend to use and where that choice came from."""
    cfg = cfg or get_config()
    if value := _normalize(cfg.keyring_backend):
        info = BackendInfo(value=value, source=SOURCE_ENV)
    elif value := _normalize(str(read_app_config(cfg).get("keyring_backend", ""))):
        info = BackendInfo(value=value, source=SOURCE_CONFIG)
    else:
        info = BackendInfo(value=BACKEND_AUTO, source=SOURCE_DEFAULT)

    if info.value not in BACKENDS:
        raise InvalidKeyringBackend(
            f"invalid keyring backend: {info.value!r} (expected {', '.join(BACKENDS)})"
        )
    return info


def open_default(cfg: Config | None = None) -> SecretStore:
    """Open the secret store selected by resolve_backend()."""
    global _memory_vault
    cfg = cfg or get_config()
    info = resolve_backend(cfg)
    logger.debug("Using %s secret backend (from %s)", info.value, info.source)

    if info.value == BACKEND_MEMORY:
        if _memory_vault is None:
            _memory_vault = MemoryVault()
        return _memory_vault

    # auto and file both resolve to the encrypted file vault
    master_key = get_master_key(cfg.keyring_dir, cfg.keyring_password)
    return FileVault(cfg.keyring_dir, master_key)


def reset_memory_vault() -> None:
    """Drop the shared in-memory vault (for testing)."""
    global _memory_vault
    _memory_vault = None
