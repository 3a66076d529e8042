"""
Email Login Flow
================
Passwordless login: request a magic link, read it from the mailbox, open it.

Steps:
    1. Navigate to the login page
    2. Fill the email textbox (located by accessible role + name)
    3. Click "Continue with email"
    4. Wait for the email in the mailbox          → ``MailboxTimeoutError``
    5. Pick the first link to the app's host      → ``LinkNotFoundError``
    6. Open it and wait for an authenticated route → ``LoginNavigationTimeoutError``

No step is retried; the first failure aborts the attempt and is raised to
the orchestrator, which owns retry policy (there is none by default).

Security:
    - The magic link is a bearer credential and is never logged.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional
from urllib.parse import urlparse

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..errors import LinkNotFoundError, LoginNavigationTimeoutError
from ..mailbox import BaseMailbox, MailMessage
from ..run_config import AuthConfig, AuthSettings
from .state_codec import host_matches

logger = logging.getLogger(__name__)


def find_magic_link(links: Iterable[str], app_host: str) -> Optional[str]:
    """First link whose host is *app_host* or one of its subdomains."""
    for href in links:
        parsed = urlparse(href)
        if parsed.scheme in ("http", "https") and host_matches(parsed.hostname, app_host):
            return href
    return None


class EmailLoginFlow:
    """Performs the magic-link login on a page of the target context."""

    def __init__(
        self,
        config: AuthConfig,
        mailbox: BaseMailbox,
        settings: Optional[AuthSettings] = None,
    ):
        self.config = config
        self.mailbox = mailbox
        self.settings = settings or AuthSettings()

    def is_authenticated_url(self, url: str) -> bool:
        """True if *url* is an app route only reachable after login."""
        parsed = urlparse(url)
        if not host_matches(parsed.hostname, self.settings.app_host):
            return False
        path = parsed.path or "/"
        if path == "/":
            return True
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.settings.authenticated_paths
        )

    async def perform_login(self, page: Page) -> None:
        """Run the full flow.  Returns normally only once logged in."""
        s = self.settings

        # ── Step 1: Login page ───────────────────────────────────────
        logger.info(f"[LOGIN] Navigating to login page: {s.login_url}")
        await page.goto(s.login_url, wait_until="networkidle")

        # ── Step 2: Email ───────────────────────────────────────────
        email_input = page.get_by_role("textbox", name="Email")
        await email_input.wait_for(timeout=s.email_input_timeout_ms)
        await email_input.fill(self.config.account_email)
        logger.info("[LOGIN] Email filled")

        # ── Step 3: Submit ──────────────────────────────────────────
        requested_at = datetime.now(timezone.utc)
        await page.get_by_role("button", name="Continue with email").click()
        logger.info("[LOGIN] Magic link requested")
        if s.post_submit_wait_ms > 0:
            await asyncio.sleep(s.post_submit_wait_ms / 1000)

        # ── Step 4: Mailbox ─────────────────────────────────────────
        message = await self.mailbox.get_message(
            self.config.account_email,
            s.mailbox_timeout_ms,
            received_after=requested_at,
        )

        # ── Step 5: Link ────────────────────────────────────────────
        magic_link = self._select_link(message)

        # ── Step 6: Follow it ───────────────────────────────────────
        try:
            await page.goto(
                magic_link, wait_until="networkidle", timeout=s.magic_link_timeout_ms
            )
            await page.wait_for_url(
                self.is_authenticated_url, timeout=s.magic_link_timeout_ms
            )
        except PlaywrightTimeout as e:
            raise LoginNavigationTimeoutError(
                f"Magic link did not reach an authenticated page within "
                f"{s.magic_link_timeout_ms / 1000:.0f}s (at {urlparse(page.url).path or '/'})"
            ) from e

        logger.info("[LOGIN] ✅ Login successful")

    def _select_link(self, message: MailMessage) -> str:
        link = find_magic_link(message.links, self.settings.app_host)
        if not link:
            raise LinkNotFoundError(
                f"Magic link not found in email (no link to {self.settings.app_host})"
            )
        return link
