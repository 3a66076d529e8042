"""
Stealth Injector
================
Prepares a ``BrowserContext`` so page scripts see a conventional browser.

The init script runs before any page script on every page of the context:

    - ``navigator.webdriver``  → undefined
    - ``navigator.plugins``    → non-empty
    - ``navigator.languages``  → ['en-US', 'en']
    - ``window.chrome``        → ``{runtime: {}}``
    - ``permissions.query({name: 'notifications'})`` → 'denied'

This reduces basic fingerprinting only.  Challenge pages are detected by the
validator and orchestrator, never solved here.
"""

from __future__ import annotations

import logging
import weakref
from typing import Any

from playwright.async_api import BrowserContext

logger = logging.getLogger(__name__)


STEALTH_SCRIPT = """
(() => {
  Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

  Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
  });

  Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
  });

  window.chrome = { runtime: {} };

  if (window.navigator.permissions && window.navigator.permissions.query) {
    const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
    window.navigator.permissions.query = (parameters) =>
      parameters && parameters.name === 'notifications'
        ? Promise.resolve({ state: 'denied' })
        : originalQuery(parameters);
  }
})();
"""


class StealthInjector:
    """Installs the stealth init script once per browser context."""

    def __init__(self, enabled: bool = True, script: str = STEALTH_SCRIPT):
        self.enabled = enabled
        self.script = script
        self._prepared: "weakref.WeakSet[Any]" = weakref.WeakSet()

    @staticmethod
    def supports(context: Any) -> bool:
        """True if the engine offers pre-navigation script injection."""
        return callable(getattr(context, "add_init_script", None))

    async def prepare(self, context: BrowserContext) -> bool:
        """Install overrides on *context*.  Must run before the first page.

        Returns:
            True if the script is installed on the context (now or by an
            earlier call), False if stealth was skipped.
        """
        if not self.enabled:
            logger.info("[STEALTH] Disabled by settings — skipping")
            return False

        if context in self._prepared:
            return True

        if not self.supports(context):
            logger.warning(
                "[STEALTH] Engine has no init-script support — continuing without stealth"
            )
            return False

        await context.add_init_script(script=self.script)
        self._prepared.add(context)
        logger.info("[STEALTH] Evasion script installed")
        return True
