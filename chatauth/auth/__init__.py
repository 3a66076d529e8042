"""
Authentication Module
=====================
Session / credential lifecycle for the chat application.

Architecture:
    - ``AuthOrchestrator``    — ``authenticate(context) -> AuthResult``
    - ``StealthInjector``     — pre-navigation fingerprint overrides
    - ``SessionValidator``    — is the cached session still usable?
    - ``EmailLoginFlow``      — magic-link login through the mailbox
    - ``CredentialPersister`` — writes new snapshots into the env file
    - ``state_codec``         — base64 JSON <-> ``AuthSnapshot``

Usage::

    from chatauth.auth import AuthOrchestrator
    from chatauth.run_config import AuthConfig

    auth = AuthOrchestrator(AuthConfig.from_env(".env.test"))
    result = await auth.authenticate(context)
"""

from . import state_codec
from .credential_store import CredentialPersister
from .email_login import EmailLoginFlow, find_magic_link
from ..errors import (
    AuthError,
    FailureKind,
    HardBlockError,
    LinkNotFoundError,
    LoginNavigationTimeoutError,
    MailboxError,
    MailboxTimeoutError,
    PersistenceTargetMissingError,
    SnapshotDecodeError,
)
from .orchestrator import AuthOrchestrator, AuthPhase, AuthResult
from .session_bootstrap import bootstrap_session
from .session_validator import SessionValidator
from .state_codec import AuthSnapshot, OriginStorage, SnapshotCookie, StorageEntry
from .stealth import StealthInjector

__all__ = [
    "AuthOrchestrator",
    "AuthPhase",
    "AuthResult",
    "StealthInjector",
    "SessionValidator",
    "EmailLoginFlow",
    "find_magic_link",
    "CredentialPersister",
    "bootstrap_session",
    "state_codec",
    "AuthSnapshot",
    "SnapshotCookie",
    "OriginStorage",
    "StorageEntry",
    # Errors
    "AuthError",
    "FailureKind",
    "HardBlockError",
    "MailboxError",
    "MailboxTimeoutError",
    "LinkNotFoundError",
    "LoginNavigationTimeoutError",
    "SnapshotDecodeError",
    "PersistenceTargetMissingError",
]
