"""
Chat Session Client
===================
Holds an authenticated page on the chat application for downstream drivers.

Usage::

    async with async_playwright() as pw:
        browser = await pw.chromium.launch()
        context = await browser.new_context()
        client = ChatSessionClient(context, AuthConfig.from_env())
        result = await client.initialize()
        if result.success:
            page = client.page        # hand to a response extractor
"""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import BrowserContext, Page

from .auth import state_codec
from .auth.orchestrator import AuthOrchestrator, AuthResult
from .run_config import AuthConfig, AuthSettings

logger = logging.getLogger(__name__)


class ChatSessionClient:
    """Authenticates a context and keeps a working page on the new-chat URL."""

    def __init__(
        self,
        context: BrowserContext,
        config: AuthConfig,
        settings: Optional[AuthSettings] = None,
        *,
        orchestrator: Optional[AuthOrchestrator] = None,
    ):
        self.context = context
        self.settings = settings or AuthSettings()
        self.auth = orchestrator or AuthOrchestrator(config, settings=self.settings)
        self.page: Optional[Page] = None
        self._authenticated = False

    async def initialize(self) -> AuthResult:
        result = await self.auth.authenticate(self.context)
        self._authenticated = result.success

        if result.success:
            self.page = await self.context.new_page()
            await self.page.goto(self.settings.new_chat_url, wait_until="networkidle")
            how = "fresh login" if result.is_new_login else "reused cached auth state"
            logger.info(f"[CLIENT] Ready ({how})")
        return result

    def is_ready(self) -> bool:
        return self._authenticated and self.page is not None

    def _require_ready(self) -> Page:
        if not self.is_ready():
            raise RuntimeError("Client not initialized")
        return self.page

    async def new_chat(self) -> None:
        page = self._require_ready()
        await page.goto(self.settings.new_chat_url, wait_until="networkidle")

    async def get_auth_state(self) -> str:
        """Encode the live context state (cookies + localStorage)."""
        self._require_ready()
        return state_codec.encode(await self.context.storage_state())

    async def close(self) -> None:
        if self.page is not None:
            await self.page.close()
            self.page = None
        self._authenticated = False
