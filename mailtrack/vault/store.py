"""
Secret stores — the (account, purpose) → value contract and its backends.

Backends:
    FileVault    AES-256-GCM encrypted items in one JSON document on disk
    MemoryVault  in-process dict (the "memory" backend, and tests)
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from pathlib import Path

from mailtrack.errors import MailtrackError, MissingAccount
from mailtrack.fsutil import atomic_write
from mailtrack.vault.crypto import decrypt, encrypt

logger = logging.getLogger(__name__)

VAULT_FILE = "secrets.json"
VAULT_FORMAT_VERSION = 1


class VaultError(MailtrackError):
    """Base class for secret store failures."""


class SecretNotFound(VaultError, KeyError):
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"secret not found: {self.key}"


class SecretPurpose(StrEnum):
    TRACKING_KEY = "tracking_key"
    ADMIN_KEY = "admin_key"


def normalize_account(account: str) -> str:
    return account.strip().lower()


def item_key(account: str, purpose: SecretPurpose | str) -> str:
    """Build the storage key for an (account, purpose) pair."""
    account = normalize_account(account)
    if not account:
        raise MissingAccount()
    return f"tracking:{account}:{SecretPurpose(purpose)}"


class SecretStore(ABC):
    """Put/get secret values keyed by account and purpose."""

    def put(self, account: str, purpose: SecretPurpose | str, value: str) -> None:
        self._set(item_key(account, purpose), value)

    def get(self, account: str, purpose: SecretPurpose | str) -> str:
        """Return the stored value. Raises SecretNotFound if absent."""
        return self._get(item_key(account, purpose))

    def delete(self, account: str, purpose: SecretPurpose | str) -> bool:
        """Delete a secret. Returns True if something was removed."""
        return self._delete(item_key(account, purpose))

    @abstractmethod
    def keys(self) -> list[str]: ...

    @abstractmethod
    def _set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def _get(self, key: str) -> str: ...

    @abstractmethod
    def _delete(self, key: str) -> bool: ...


class MemoryVault(SecretStore):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def keys(self) -> list[str]:
        return sorted(self._items)

    def _set(self, key: str, value: str) -> None:
        self._items[key] = value

    def _get(self, key: str) -> str:
        try:
            return self._items[key]
        except KeyError:
            raise SecretNotFound(key) from None

    def _delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None


class FileVault(SecretStore):
    """Encrypted secrets in <directory>/secrets.json.

    Values are encrypted individually; keys stay readable so they can be
    listed without the master key.
    """

    def __init__(self, directory: Path, master_key: bytes) -> None:
        self.directory = Path(directory)
        self.path = self.directory / VAULT_FILE
        self._master_key = master_key

    def keys(self) -> list[str]:
        return sorted(self._read())

    def _set(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = base64.b64encode(encrypt(value, self._master_key)).decode("ascii")
        self._write(items)
        logger.debug("Stored secret %s in %s", key, self.path)

    def _get(self, key: str) -> str:
        items = self._read()
        if key not in items:
            raise SecretNotFound(key)
        try:
            return decrypt(base64.b64decode(items[key]), self._master_key)
        except Exception as e:
            raise VaultError(f"decrypt {key}: {e}") from e

    def _delete(self, key: str) -> bool:
        items = self._read()
        if items.pop(key, None) is None:
            return False
        self._write(items)
        return True

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise VaultError(f"read vault {self.path}: {e}") from e
        items = doc.get("items", {}) if isinstance(doc, dict) else {}
        return dict(items)

    def _write(self, items: dict[str, str]) -> None:
        doc = {"version": VAULT_FORMAT_VERSION, "items": items}
        atomic_write(self.path, json.dumps(doc, indent=2, sort_keys=True).encode("utf-8"))
