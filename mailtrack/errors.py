"""Base exceptions shared by the tracking and vault packages."""

from __future__ import annotations


class MailtrackError(Exception):
    """Root of every error raised by mailtrack."""


class MissingAccount(MailtrackError, ValueError):
    """An operation keyed by account was called with an empty account."""

    def __init__(self, message: str = "missing account") -> None:
        super().__init__(message)
