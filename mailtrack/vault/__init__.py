"""
mailtrack vault — secret storage keyed by (account, purpose).

Public API:
    open_default()                       → SecretStore for the configured backend
    store.put(account, purpose, value)   → store (encrypted for the file backend)
    store.get(account, purpose)          → value, or raise SecretNotFound
    store.delete(account, purpose)       → True if removed
    resolve_backend()                    → BackendInfo(value, source)
"""

from __future__ import annotations

from mailtrack.vault.backend import (
    BackendInfo,
    InvalidKeyringBackend,
    open_default,
    resolve_backend,
)
from mailtrack.vault.store import (
    FileVault,
    MemoryVault,
    SecretNotFound,
    SecretPurpose,
    SecretStore,
    VaultError,
)

__all__ = [
    "BackendInfo",
    "FileVault",
    "InvalidKeyringBackend",
    "MemoryVault",
    "SecretNotFound",
    "SecretPurpose",
    "SecretStore",
    "VaultError",
    "open_default",
    "resolve_backend",
]
