"""
Targeted edits of the worker's wrangler.toml.

The descriptor is edited as raw text, never parsed and re-serialized, so
comments, ordering and unrelated tables survive byte-for-byte. Only the
quoted value of a ``key = "..."`` assignment is rewritten.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from mailtrack.fsutil import atomic_write
from mailtrack.tracking.errors import DescriptorNotFound

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "wrangler.toml"
SCHEMA_FILE = "schema.sql"


def _assignment(key: str) -> re.Pattern[str]:
    # Anchored at line start so "name" never matches "database_name".
    return re.compile(
        rf'^(?P<head>[ \t]*{re.escape(key)}[ \t]*=[ \t]*)"(?:[^"\\\n]|\\.)*"',
        re.MULTILINE,
    )


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def set_string_field(content: str, key: str, value: str) -> str:
    """Replace the quoted value of the first ``key = "..."`` assignment.

    Content without the key is returned unchanged.
    """
    replacement = _quote(value)
    return _assignment(key).sub(
        lambda m: m.group("head") + replacement, content, count=1
    )


def _field_pattern(key: str) -> re.Pattern[str]:
    # "database_id" also matches the label form "Database ID".
    label = r"[_ \t]+".join(re.escape(part) for part in key.split("_") if part)
    return re.compile(
        rf'(?:^|[\s,{{|│])"?{label}"?[ \t]*[:=][ \t]*"?(?P<value>[^"\s,|│}}]+)"?',
        re.IGNORECASE | re.MULTILINE,
    )


def parse_field(content: str, key: str) -> str:
    """Extract a field value from descriptor text or CLI output.

    Understands ``key = "v"``, ``key: v``, ``key: "v"`` and ``Key Label: v``.
    Returns "" when nothing matches.
    """
    match = _field_pattern(key).search(content)
    if not match:
        return ""
    return match.group("value").strip()


def parse_database_id(output: str) -> str:
    return parse_field(output, "database_id")


def descriptor_path(worker_dir: Path | str) -> Path:
    return Path(worker_dir) / DESCRIPTOR_FILE


def write_descriptor(
    worker_dir: Path | str,
    worker_name: str,
    database_name: str,
    database_id: str,
) -> Path:
    """Point wrangler.toml at the given worker name and D1 database.

    Raises:
        DescriptorNotFound: if the directory has no wrangler.toml.
    """
    path = descriptor_path(worker_dir)
    if not path.is_file():
        raise DescriptorNotFound(path)

    content = path.read_text(encoding="utf-8")
    content = set_string_field(content, "name", worker_name)
    content = set_string_field(content, "database_name", database_name)
    content = set_string_field(content, "database_id", database_id)

    atomic_write(path, content.encode("utf-8"))
    logger.info("Updated %s (worker=%s, database=%s)", path, worker_name, database_name)
    return path
