"""
Auth Orchestrator
=================
The single public entry point: ``authenticate(context) -> AuthResult``.

Lifecycle::

    NO_SNAPSHOT ─┐
                 ├─► VALIDATING ─► VALID                          (success)
                 │        │
                 └────────┴─► INVALID ─► CHECKING_HARD_BLOCK
                                           ├─► HARD_BLOCKED       (failure)
                                           └─► ATTEMPTING_LOGIN
                                                 ├─► LOGGED_IN    (success)
                                                 └─► LOGIN_FAILED (failure)

Every collaborator is injected; nothing is module-global, so independent
contexts can authenticate concurrently.  Expected failures come back as a
failed ``AuthResult``, including an env file that cannot be written after a
successful login.  Only configuration mistakes raise:
``SnapshotDecodeError`` (bad cached state) and
``PersistenceTargetMissingError`` (env file lacks the marker line).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import BrowserContext, Page

from ..errors import AuthError, FailureKind, HardBlockError
from ..mailbox import BaseMailbox, MailosaurMailbox
from ..run_config import AuthConfig, AuthSettings
from . import state_codec
from .credential_store import CredentialPersister
from .email_login import EmailLoginFlow
from .session_validator import SessionValidator
from .state_codec import AuthSnapshot, host_matches
from .stealth import StealthInjector

logger = logging.getLogger(__name__)


class AuthPhase(str, Enum):
    NO_SNAPSHOT = "no_snapshot"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    CHECKING_HARD_BLOCK = "checking_hard_block"
    HARD_BLOCKED = "hard_blocked"
    ATTEMPTING_LOGIN = "attempting_login"
    LOGGED_IN = "logged_in"
    LOGIN_FAILED = "login_failed"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of one ``authenticate`` call.

    ``snapshot`` is set iff ``success``; ``error`` and ``failure`` iff not.
    """
    success: bool
    is_new_login: bool
    snapshot: Optional[str] = None
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    phase: Optional[AuthPhase] = None

    def __post_init__(self):
        if self.success and (not self.snapshot or self.error):
            raise ValueError("A successful AuthResult needs a snapshot and no error")
        if not self.success and (self.snapshot or not self.error):
            raise ValueError("A failed AuthResult needs an error and no snapshot")

    @classmethod
    def succeeded(cls, snapshot: str, *, is_new_login: bool, phase: AuthPhase) -> "AuthResult":
        return cls(success=True, is_new_login=is_new_login, snapshot=snapshot, phase=phase)

    @classmethod
    def failed(
        cls, error: str, failure: FailureKind, *, is_new_login: bool, phase: AuthPhase
    ) -> "AuthResult":
        return cls(
            success=False, is_new_login=is_new_login,
            error=error or "Authentication failed", failure=failure, phase=phase,
        )


class AuthOrchestrator:
    """Composes stealth, snapshot replay, validation, login and persistence."""

    def __init__(
        self,
        config: AuthConfig,
        *,
        settings: Optional[AuthSettings] = None,
        mailbox: Optional[BaseMailbox] = None,
        stealth: Optional[StealthInjector] = None,
        validator: Optional[SessionValidator] = None,
        login_flow: Optional[EmailLoginFlow] = None,
        persister: Optional[CredentialPersister] = None,
    ):
        """
        Args:
            config:     Account + mailbox credentials (immutable).
            settings:   App URLs, selectors and timeouts.
            mailbox:    Mailbox client; defaults to Mailosaur from *config*.
            stealth:    Context preparer; defaults from ``settings.stealth``.
            validator:  Session validator.
            login_flow: Email login flow; built from *mailbox* if omitted.
            persister:  Env-file writer for new snapshots.
        """
        self.config = config
        self.settings = settings or AuthSettings()
        s = self.settings

        if login_flow is None:
            mailbox = mailbox or MailosaurMailbox(
                config.mailbox_api_key,
                config.mailbox_server_id,
            )
            login_flow = EmailLoginFlow(config, mailbox, s)

        self.login_flow = login_flow
        self.stealth = stealth or StealthInjector(enabled=s.stealth)
        self.validator = validator or SessionValidator(s)
        self.persister = persister or CredentialPersister(key=s.state_env_key)

    # ── Public API ────────────────────────────────────────────────

    async def authenticate(self, context: BrowserContext) -> AuthResult:
        """Make *context* authenticated, reusing the cached snapshot if possible.

        Raises:
            SnapshotDecodeError:           cached state is malformed.
            PersistenceTargetMissingError: env file has no marker line.
        """
        await self.stealth.prepare(context)

        snapshot = state_codec.decode(self.config.cached_state)
        has_snapshot = False
        if snapshot is not None:
            has_snapshot = await self._apply_snapshot(context, snapshot)

        is_new_login = False
        phase = AuthPhase.NO_SNAPSHOT
        page = await context.new_page()
        try:
            try:
                valid = False
                if has_snapshot:
                    phase = self._enter(AuthPhase.VALIDATING)
                    valid = await self.validator.is_valid(page)
                else:
                    self._enter(AuthPhase.NO_SNAPSHOT)

                if valid:
                    phase = self._enter(AuthPhase.VALID)
                else:
                    self._enter(AuthPhase.INVALID)
                    phase = self._enter(AuthPhase.CHECKING_HARD_BLOCK)
                    if self.validator.is_challenge_url(page.url):
                        raise HardBlockError(
                            "Cloudflare challenge detected - automated login blocked."
                        )

                    phase = self._enter(AuthPhase.ATTEMPTING_LOGIN)
                    await self.login_flow.perform_login(page)
                    is_new_login = True
                    phase = self._enter(AuthPhase.LOGGED_IN)

                encoded = state_codec.encode(await context.storage_state())

            except Exception as e:
                failure = e.kind if isinstance(e, AuthError) else FailureKind.LOGIN_FAILED
                terminal = (
                    AuthPhase.HARD_BLOCKED if failure is FailureKind.HARD_BLOCK
                    else AuthPhase.LOGIN_FAILED
                )
                self._enter(terminal)
                logger.error(f"[SESSION] Authentication failed ({failure.value}) in {phase.value}: {e}")
                return AuthResult.failed(
                    str(e), failure, is_new_login=is_new_login, phase=terminal,
                )

            if is_new_login:
                try:
                    self.persister.persist(encoded, self.config.env_file_path)
                except OSError as e:
                    logger.error(f"[SESSION] Could not persist new snapshot: {e}")
                    return AuthResult.failed(
                        f"Logged in but could not write the env file: {e}",
                        FailureKind.PERSISTENCE_FAILED,
                        is_new_login=True, phase=AuthPhase.LOGGED_IN,
                    )

            return AuthResult.succeeded(encoded, is_new_login=is_new_login, phase=phase)
        finally:
            await page.close()

    # ── Internal ──────────────────────────────────────────────────

    @staticmethod
    def _enter(phase: AuthPhase) -> AuthPhase:
        logger.info(f"[SESSION] → {phase.value}")
        return phase

    async def _apply_snapshot(self, context: BrowserContext, snapshot: AuthSnapshot) -> bool:
        """Load the cached cookies (app domains only) into *context*."""
        domains = self.settings.effective_cookie_domains
        cookies = snapshot.cookies_for(domains)
        if cookies:
            await context.add_cookies(cookies)
        logger.info(
            f"[SESSION] Cached snapshot applied: {len(cookies)}/{len(snapshot.cookies)} cookies"
        )

        if self.settings.replay_local_storage:
            await self._replay_local_storage(context, snapshot, domains)
        return True

    async def _replay_local_storage(self, context: BrowserContext, snapshot: AuthSnapshot, domains) -> None:
        """Write each app origin's localStorage through a short-lived page."""
        for origin in snapshot.origins:
            if not origin.local_storage:
                continue
            host = urlparse(origin.origin).hostname
            if not any(host_matches(host, d) for d in domains if d):
                continue

            page: Page = await context.new_page()
            try:
                await page.goto(
                    origin.origin,
                    wait_until="domcontentloaded",
                    timeout=self.settings.validation_timeout_ms,
                )
                await page.evaluate(
                    "entries => { for (const [k, v] of entries) localStorage.setItem(k, v); }",
                    [[e.key, e.value] for e in origin.local_storage],
                )
                logger.info(
                    f"[SESSION] Replayed {len(origin.local_storage)} localStorage entries "
                    f"for {origin.origin}"
                )
            except Exception as e:
                logger.warning(f"[SESSION] localStorage replay failed for {origin.origin}: {e}")
            finally:
                await page.close()
