"""
Root-level shared test fixtures.

Every test gets its own config directory and the in-memory secret backend,
so nothing touches the real ~/.config or keyring.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mailtrack.config import reset_config
from mailtrack.vault.backend import reset_memory_vault
from mailtrack.vault.crypto import reset_key_cache


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Path:
    """Point mailtrack at a temporary config dir for the duration of a test."""
    config_dir = tmp_path / "mailtrack-config"
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("MAILTRACK_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("MAILTRACK_KEYRING_BACKEND", "memory")
    for key in ["MAILTRACK_KEYRING_PASSWORD", "MAILTRACK_WRANGLER"]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    reset_memory_vault()
    reset_key_cache()
    yield config_dir
    reset_config()
    reset_memory_vault()
    reset_key_cache()
