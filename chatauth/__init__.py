"""
Chat Auth Package
Keeps an automated browser logged in to a browser-only chat application.

CLI Usage:
    python -m chatauth [options]

    Options:
        --env-file              Env file with credentials (default: .env.test)
        --headed                Show the browser window
        --no-stealth            Skip the fingerprint overrides
        --replay-local-storage  Restore cached localStorage as well as cookies
        --no-persist            Do not write a new snapshot back
        --bootstrap             Manual login in a headed browser
"""

from .run_config import AuthConfig, AuthSettings, ConfigError
from .mailbox import BaseMailbox, MailMessage, MailosaurMailbox
from .auth import AuthOrchestrator, AuthResult, FailureKind
from .client import ChatSessionClient

__all__ = [
    'AuthConfig',
    'AuthSettings',
    'ConfigError',
    'BaseMailbox',
    'MailMessage',
    'MailosaurMailbox',
    'AuthOrchestrator',
    'AuthResult',
    'FailureKind',
    'ChatSessionClient',
]

__version__ = '1.0.0'
