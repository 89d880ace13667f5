"""
Centralized configuration for mailtrack.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from mailtrack.config import get_config
    cfg = get_config()
    print(cfg.config_dir)        # ~/.config/mailtrack or $MAILTRACK_CONFIG_DIR
    print(cfg.tracking_dir)      # <config_dir>/tracking
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

APP_NAME = "mailtrack"


def user_config_dir() -> Path:
    """Return the platform's per-user configuration directory."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata)
    return Path.home() / ".config"


@dataclass(frozen=True)
class Config:
    """Top-level mailtrack configuration."""

    config_dir: Path = field(default_factory=lambda: user_config_dir() / APP_NAME)
    keyring_backend: str = ""  # empty = not set in env; see vault.resolve_backend
    keyring_password: str = field(default="", repr=False)
    wrangler: str = "wrangler"

    @property
    def tracking_dir(self) -> Path:
        return self.config_dir / "tracking"

    @property
    def keyring_dir(self) -> Path:
        return self.config_dir / "keyring"

    @property
    def app_config_path(self) -> Path:
        return self.config_dir / "config.json"


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    config_dir = Path(
        os.environ.get("MAILTRACK_CONFIG_DIR", "") or user_config_dir() / APP_NAME
    )
    return Config(
        config_dir=config_dir,
        keyring_backend=os.environ.get("MAILTRACK_KEYRING_BACKEND", ""),
        keyring_password=os.environ.get("MAILTRACK_KEYRING_PASSWORD", ""),
        wrangler=os.environ.get("MAILTRACK_WRANGLER", "") or "wrangler",
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
