"""
Errors
======
Failure taxonomy for the authentication lifecycle and the mailbox client.

Every login-path error carries a ``FailureKind`` so the orchestrator can turn
it into a tagged ``AuthResult`` instead of letting it escape.  Two errors are
configuration mistakes and are allowed to propagate past ``authenticate``:
``SnapshotDecodeError`` and ``PersistenceTargetMissingError``.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classification attached to a failed ``AuthResult``."""

    HARD_BLOCK = "hard_block"
    MAILBOX_TIMEOUT = "mailbox_timeout"
    LINK_NOT_FOUND = "link_not_found"
    LOGIN_NAVIGATION_TIMEOUT = "login_navigation_timeout"
    LOGIN_FAILED = "login_failed"
    PERSISTENCE_FAILED = "persistence_failed"


class AuthError(Exception):
    """Base class for all errors raised by the auth subsystem."""

    kind: FailureKind = FailureKind.LOGIN_FAILED


class HardBlockError(AuthError):
    """An anti-automation challenge page blocks any further progress."""

    kind = FailureKind.HARD_BLOCK


class MailboxError(AuthError):
    """The mailbox provider returned an error response."""


class MailboxTimeoutError(MailboxError):
    """No message reached the mailbox before the timeout."""

    kind = FailureKind.MAILBOX_TIMEOUT


class LinkNotFoundError(AuthError):
    """A message arrived but it holds no link to the application."""

    kind = FailureKind.LINK_NOT_FOUND


class LoginNavigationTimeoutError(AuthError):
    """The magic link never landed on an authenticated route."""

    kind = FailureKind.LOGIN_NAVIGATION_TIMEOUT


class SnapshotDecodeError(ValueError):
    """The cached snapshot string is not valid base64 JSON of the right shape."""


class PersistenceTargetMissingError(RuntimeError):
    """The durable store has no marker line to write the snapshot into."""
