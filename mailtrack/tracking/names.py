"""Worker and database name sanitization.

Remote resource names must match ``[a-z0-9-]``, may not start or end with a
dash and are capped at 63 characters.
"""

from __future__ import annotations

import re

DEFAULT_WORKER_NAME = "mailtrack-email-tracker"
MAX_NAME_LENGTH = 63

_INVALID = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-{2,}")


def sanitize_worker_name(raw: str) -> str:
    """Normalize ``raw`` into a valid resource name.

    Returns "" when nothing usable remains; callers substitute a default.
    """
    name = _INVALID.sub("-", raw.lower())
    name = _DASHES.sub("-", name).strip("-")
    return name[:MAX_NAME_LENGTH].rstrip("-")


def default_worker_name(seed: str) -> str:
    """Return the default worker name, suffixed with ``seed`` when it has one."""
    if not seed.strip():
        return DEFAULT_WORKER_NAME
    suffix = sanitize_worker_name(seed)
    if not suffix:
        return DEFAULT_WORKER_NAME
    name = f"{DEFAULT_WORKER_NAME}-{suffix}"
    return name[:MAX_NAME_LENGTH].rstrip("-")
