"""
Session Validator
=================
Decides whether the cookies loaded into a context still grant access.

Validation is conservative: ``True`` only when the chat input is visibly
rendered on the new-chat page.  Navigation errors, login redirects, challenge
redirects and a missing input all collapse to ``False``; the validator never
raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import Page

from ..run_config import AuthSettings

logger = logging.getLogger(__name__)


class SessionValidator:
    """Checks a page for evidence of an authenticated, ready chat surface."""

    def __init__(self, settings: Optional[AuthSettings] = None):
        self.settings = settings or AuthSettings()

    # ── URL classification ────────────────────────────────────────

    def is_login_url(self, url: str) -> bool:
        return self.settings.login_path.lower() in (url or "").lower()

    def is_challenge_url(self, url: str) -> bool:
        return self.settings.challenge_marker.lower() in (url or "").lower()

    def _is_rejected(self, url: str) -> bool:
        if self.is_challenge_url(url):
            logger.warning(f"[SESSION] Challenge redirect detected: {url[:80]}")
            return True
        if self.is_login_url(url):
            logger.info(f"[SESSION] Redirected to login: {url[:80]}")
            return True
        return False

    # ── Public API ────────────────────────────────────────────────

    async def is_valid(self, page: Page, timeout_ms: Optional[int] = None) -> bool:
        """Return True if the current cookies open an authenticated chat.

        Steps:
            1. Navigate to the new-chat URL (bounded)
            2. Reject login / challenge URLs immediately
            3. Settle wait for client-side redirects, then re-check
            4. Probe chat-input selectors; first visible match wins
        """
        timeout = timeout_ms if timeout_ms is not None else self.settings.validation_timeout_ms
        target = self.settings.new_chat_url

        # ── Step 1: Navigate ─────────────────────────────────────────
        try:
            await page.goto(target, wait_until="domcontentloaded", timeout=timeout)
        except Exception as e:
            logger.info(f"[SESSION] Validation navigation failed: {e}")
            return False

        # ── Step 2: Conclusive redirect? ────────────────────────────
        if self._is_rejected(page.url):
            return False

        # ── Step 3: Settle, then re-check ───────────────────────────
        if self.settings.settle_ms > 0:
            await asyncio.sleep(self.settings.settle_ms / 1000)
        if self._is_rejected(page.url):
            return False

        # ── Step 4: Chat input present? ─────────────────────────────
        for sel in self.settings.chat_input_selectors:
            try:
                if await page.locator(sel).first.is_visible():
                    logger.info(f"[SESSION] Session valid — chat input found: {sel}")
                    return True
            except Exception:
                continue

        logger.info("[SESSION] Chat input not visible — session treated as invalid")
        return False
