"""
Run Configuration
=================
Single source of truth for the authentication defaults and timeouts.

Two objects live here:

    - ``AuthSettings`` — how to talk to the chat application (URLs, selectors,
      timeouts, stealth / replay switches).  Mutable; the CLI overrides it.
    - ``AuthConfig``   — who to log in as (mailbox credentials, account
      email, cached snapshot, durable store path).  Immutable once built.

Every timeout used by the validator, the login flow and the orchestrator
reads from ``_DEFAULTS`` so no magic numbers are duplicated across modules.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "app_url": "https://claude.ai",
    "login_path": "/login",
    "new_chat_path": "/new",
    "challenge_marker": "challenge_redirect",
    "validation_timeout_ms": 15_000,
    "settle_ms": 2_000,              # client-side redirect settle wait
    "email_input_timeout_ms": 15_000,
    "post_submit_wait_ms": 2_000,
    "mailbox_timeout_ms": 60_000,
    "magic_link_timeout_ms": 30_000,
    "stealth": True,
    "replay_local_storage": False,
    "state_env_key": "CLAUDE_AUTH_STATE",
    "env_file": ".env.test",
    "headless": True,
    "user_agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
}

# Env var names read by ``AuthConfig.from_env``
ENV_MAILBOX_API_KEY = "MAILOSAUR_API_KEY"
ENV_MAILBOX_SERVER_ID = "MAILOSAUR_SERVER_ID"
ENV_ACCOUNT_EMAIL = "CLAUDE_EMAIL"


class ConfigError(ValueError):
    """Required configuration is missing or unusable."""


@dataclass
class AuthSettings:
    """
    Application profile + timeouts consumed by every auth component.

    Populate via:
      - ``AuthSettings()``                        → claude.ai defaults
      - ``AuthSettings(app_url="https://...")``   → another deployment
      - ``AuthSettings.from_cli_args(ns)``        → from argparse Namespace
    """

    # ---- Application ----
    app_url: str = _DEFAULTS["app_url"]
    login_path: str = _DEFAULTS["login_path"]
    new_chat_path: str = _DEFAULTS["new_chat_path"]
    challenge_marker: str = _DEFAULTS["challenge_marker"]

    cookie_domains: Tuple[str, ...] = ()
    """Domains whose cookies (and subdomains' cookies) are replayed.
    Empty means the app host plus ``anthropic.com``."""

    chat_input_selectors: List[str] = field(default_factory=lambda: [
        '[data-testid="chat-input"]',
        'textarea[placeholder*="Claude"]',
        '[contenteditable="true"]',
    ])
    """Candidates for the primary chat input (tried in order)."""

    authenticated_paths: List[str] = field(default_factory=lambda: [
        "/new", "/chat",
    ])
    """Routes that count as an authenticated landing route, matched on whole
    path segments (`/chat` covers `/chat/<id>`, not `/chatbot`).
    The bare app root is always accepted as well."""

    # ---- Timeouts ----
    validation_timeout_ms: int = _DEFAULTS["validation_timeout_ms"]
    settle_ms: int = _DEFAULTS["settle_ms"]
    email_input_timeout_ms: int = _DEFAULTS["email_input_timeout_ms"]
    post_submit_wait_ms: int = _DEFAULTS["post_submit_wait_ms"]
    mailbox_timeout_ms: int = _DEFAULTS["mailbox_timeout_ms"]
    magic_link_timeout_ms: int = _DEFAULTS["magic_link_timeout_ms"]

    # ---- Behaviour switches ----
    stealth: bool = _DEFAULTS["stealth"]
    replay_local_storage: bool = _DEFAULTS["replay_local_storage"]
    state_env_key: str = _DEFAULTS["state_env_key"]

    # ---- Browser ----
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]

    # -----------------------------------------------------------------------
    # Derived values
    # -----------------------------------------------------------------------
    @property
    def app_host(self) -> str:
        return (urlparse(self.app_url).hostname or "").lower()

    @property
    def base_url(self) -> str:
        return self.app_url.rstrip("/")

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{self.login_path}"

    @property
    def new_chat_url(self) -> str:
        return f"{self.base_url}{self.new_chat_path}"

    @property
    def effective_cookie_domains(self) -> Tuple[str, ...]:
        if self.cookie_domains:
            return tuple(self.cookie_domains)
        return (self.app_host, "anthropic.com")

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_cli_args(cls, args) -> "AuthSettings":
        """Build settings from an argparse Namespace (``__main__.py``)."""
        return cls(
            app_url=getattr(args, "app_url", None) or _DEFAULTS["app_url"],
            stealth=not getattr(args, "no_stealth", False),
            replay_local_storage=getattr(args, "replay_local_storage", False),
            headless=not getattr(args, "headed", False),
        )

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("AUTH RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  App URL:          {self.base_url}")
        logger.info(f"  Cookie Domains:   {', '.join(self.effective_cookie_domains)}")
        logger.info(f"  Validation:       {self.validation_timeout_ms}ms (+{self.settle_ms}ms settle)")
        logger.info(f"  Mailbox Timeout:  {self.mailbox_timeout_ms}ms")
        logger.info(f"  Magic Link:       {self.magic_link_timeout_ms}ms")
        logger.info(f"  Stealth:          {'on' if self.stealth else 'off'}")
        logger.info(f"  Replay Storage:   {'on' if self.replay_local_storage else 'off'}")
        logger.info(f"  Headless:         {self.headless}")
        logger.info("=" * 60)


@dataclass(frozen=True)
class AuthConfig:
    """Credentials for one client instance.  Never mutated after creation."""

    mailbox_api_key: str
    mailbox_server_id: str
    account_email: str
    cached_state: Optional[str] = None
    """Previously persisted snapshot (base64 string), if any."""

    env_file_path: Optional[str] = None
    """Durable store for new snapshots.  ``None`` disables write-back."""

    def __repr__(self) -> str:
        # Keep the API key and snapshot out of logs / tracebacks
        return (
            f"AuthConfig(account_email={self.account_email!r}, "
            f"mailbox_server_id={self.mailbox_server_id!r}, "
            f"cached_state={'<set>' if self.cached_state else None}, "
            f"env_file_path={self.env_file_path!r})"
        )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = _DEFAULTS["env_file"],
        *,
        state_env_key: str = _DEFAULTS["state_env_key"],
        persist: bool = True,
    ) -> "AuthConfig":
        """Resolve config from an env file layered over ``os.environ``.

        Values in the file win over the process environment, matching how
        the file is also the write-back target for new snapshots.

        Raises:
            ConfigError: if a required variable is missing.
        """
        values: Dict[str, Optional[str]] = dict(os.environ)
        path = Path(env_file) if env_file else None
        if path and path.exists():
            values.update(dotenv_values(path))
            logger.debug(f"[CONFIG] Loaded env file: {path}")
        elif path:
            logger.info(f"[CONFIG] Env file not found: {path} — using process environment")

        required = (ENV_MAILBOX_API_KEY, ENV_MAILBOX_SERVER_ID, ENV_ACCOUNT_EMAIL)
        missing = [name for name in required if not values.get(name)]
        if missing:
            raise ConfigError(
                f"Missing required env vars: {', '.join(missing)}. "
                f"Copy .env.test.example to {env_file or '.env.test'} and fill in values."
            )

        return cls(
            mailbox_api_key=values[ENV_MAILBOX_API_KEY],
            mailbox_server_id=values[ENV_MAILBOX_SERVER_ID],
            account_email=values[ENV_ACCOUNT_EMAIL],
            cached_state=values.get(state_env_key) or None,
            env_file_path=str(path) if (persist and path and path.exists()) else None,
        )
