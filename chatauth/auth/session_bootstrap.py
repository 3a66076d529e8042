"""
Session Bootstrap Utility
=========================
Launches a headed (visible) browser for a manual login.

Use cases:
    - The magic-link flow is blocked by a challenge page
    - First-time session establishment before headless runs
    - Accounts whose mailbox is not wired to the mailbox provider

Workflow:
    1. Launch headed Chromium with the stealth script installed
    2. Navigate to the app login page
    3. User logs in manually (challenge, email link, SSO...)
    4. Script waits for the user to press Enter in the terminal
    5. Encodes the context state and writes it into the env file
       (``CLAUDE_AUTH_STATE=...``)
    6. Closes the browser

Usage::

    python -m chatauth --bootstrap --env-file .env.test
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import async_playwright

from ..run_config import AuthSettings
from . import state_codec
from .credential_store import CredentialPersister
from .stealth import StealthInjector

logger = logging.getLogger(__name__)


async def bootstrap_session(
    settings: Optional[AuthSettings] = None,
    env_file_path: Optional[str] = None,
    timeout_minutes: int = 10,
) -> Optional[str]:
    """Open a browser for manual login and persist the resulting session.

    Args:
        settings:        App URLs / stealth switch.
        env_file_path:   Env file to write the snapshot into (None = print only).
        timeout_minutes: Maximum wait for the user (minutes).

    Returns:
        The encoded snapshot, or None if no app cookies were captured.

    Raises:
        PersistenceTargetMissingError: the env file lacks the marker line.
    """
    settings = settings or AuthSettings()

    print("\n" + "=" * 60)
    print("  SESSION BOOTSTRAP MODE")
    print("=" * 60)
    print(f"  App URL:      {settings.base_url}")
    print(f"  Env file:     {env_file_path or '<not persisted>'}")
    print(f"  Timeout:      {timeout_minutes} minutes")
    print("=" * 60)
    print()
    print("  A browser window will open.")
    print("  Please log in manually.")
    print("  Once the chat page is loaded, press ENTER in this")
    print("  terminal to save the session.")
    print()
    print("=" * 60)

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=False,  # headed: user needs to see and interact
            args=['--disable-blink-features=AutomationControlled'],
        )
        try:
            context = await browser.new_context(
                locale="en-US",
                user_agent=settings.user_agent,
            )
            await StealthInjector(enabled=settings.stealth).prepare(context)

            page = await context.new_page()
            try:
                await page.goto(settings.login_url, wait_until="load", timeout=60_000)
            except Exception as e:
                logger.warning(f"[BOOTSTRAP] Initial navigation issue: {e}")

            print(f"\n  Browser opened. Current URL: {page.url[:100]}")
            print("  ➡  Log in manually now.")
            print("  ➡  When fully logged in, come back here and press ENTER.\n")

            try:
                await asyncio.wait_for(
                    asyncio.to_thread(_wait_for_enter),
                    timeout=timeout_minutes * 60,
                )
            except asyncio.TimeoutError:
                print(f"\n  ⏰ Timeout ({timeout_minutes} min) — saving current state anyway.")

            state = await context.storage_state()
            encoded = state_codec.encode(state)
            snapshot = state_codec.decode(encoded)
            app_cookies = snapshot.cookies_for(settings.effective_cookie_domains)

            print(f"\n  Current URL:   {page.url[:100]}")
            print(f"  Cookies:       {len(snapshot.cookies)} ({len(app_cookies)} for the app)")
            print(f"  Origins:       {len(snapshot.origins)}")

            if not app_cookies:
                print("\n  ⚠  No app cookies captured — login may not have completed.\n")
                return None

            persisted = CredentialPersister(key=settings.state_env_key).persist(
                encoded, env_file_path
            )
            if persisted:
                print(f"\n  ✅ Session saved to {env_file_path}\n")
            else:
                print(f"\n  ✅ Session captured ({len(encoded)} chars).")
                print(f"  Set {settings.state_env_key} to reuse it.\n")
            return encoded
        finally:
            await browser.close()


def _wait_for_enter() -> str:
    """Block until the user presses Enter (runs in a worker thread)."""
    try:
        return input("  Press ENTER when login is complete → ")
    except (EOFError, KeyboardInterrupt):
        return ""
