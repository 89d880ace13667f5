"""
Tracking worker provisioning and per-account tracking configuration.

Public API:
    deploy_worker(options)               → D1 database id
    load_config(account)                 → TrackingConfig
    save_config(account, cfg)            → path written
    save_secrets(account, track, admin)  → keys stored in the vault
"""

from __future__ import annotations

from mailtrack.tracking.deploy import DeployOptions, deploy_worker, ensure_database
from mailtrack.tracking.names import default_worker_name, sanitize_worker_name
from mailtrack.tracking.settings import (
    TrackingConfig,
    config_path,
    legacy_config_path,
    load_config,
    save_config,
    save_secrets,
)

__all__ = [
    "DeployOptions",
    "TrackingConfig",
    "config_path",
    "default_worker_name",
    "deploy_worker",
    "ensure_database",
    "legacy_config_path",
    "load_config",
    "sanitize_worker_name",
    "save_config",
    "save_secrets",
]
