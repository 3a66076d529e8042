"""
Shared fakes for the auth tests.

Playwright pages and contexts are replaced by small in-memory objects that
record calls and follow a route table, so no browser is needed.
"""

import base64
import json

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from chatauth.errors import MailboxTimeoutError
from chatauth.mailbox import BaseMailbox, MailMessage
from chatauth.run_config import AuthConfig, AuthSettings

APP_URL = "https://app.example"


# ====================================================================
# Playwright fakes
# ====================================================================

class FakeLocator:
    def __init__(self, page, key, visible=False, error=None):
        self.page = page
        self.key = key
        self.visible = visible
        self.error = error

    @property
    def first(self):
        return self

    async def is_visible(self):
        if self.error:
            raise self.error
        return self.visible

    async def wait_for(self, timeout=None, state=None):
        if not self.visible:
            raise PlaywrightTimeout(f"Timeout {timeout}ms waiting for {self.key}")

    async def fill(self, value):
        self.page.filled.append((self.key, value))

    async def click(self, **kwargs):
        self.page.clicked.append(self.key)


class FakePage:
    """Route table maps a requested URL to the URL the page ends on,
    or to an exception that ``goto`` raises."""

    def __init__(self, routes=None, visible=(), broken=()):
        self.routes = dict(routes or {})
        self.visible = set(visible)
        self.broken = set(broken)
        self.url = "about:blank"
        self.visited = []
        self.filled = []
        self.clicked = []
        self.evaluated = []
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        target = self.routes.get(url, url)
        if isinstance(target, Exception):
            raise target
        self.url = target

    def locator(self, selector):
        error = RuntimeError("detached") if selector in self.broken else None
        return FakeLocator(self, selector, selector in self.visible, error)

    def get_by_role(self, role, name=None):
        key = (role, name)
        return FakeLocator(self, key, key in self.visible)

    async def wait_for_url(self, url, timeout=None):
        matched = url(self.url) if callable(url) else url == self.url
        if not matched:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for URL")

    async def evaluate(self, script, arg=None):
        self.evaluated.append((self.url, arg))

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, page_factory=None, state=None):
        self.page_factory = page_factory or FakePage
        self.state = state if state is not None else live_state()
        self.init_scripts = []
        self.cookies = []
        self.pages = []

    async def add_init_script(self, script=None, path=None):
        self.init_scripts.append(script)

    async def add_cookies(self, cookies):
        self.cookies.extend(cookies)

    async def new_page(self):
        page = self.page_factory()
        self.pages.append(page)
        return page

    async def storage_state(self, path=None):
        return self.state


# ====================================================================
# Mailbox fakes
# ====================================================================

class FakeMailbox(BaseMailbox):
    def __init__(self, message=None, error=None):
        self.message = message
        self.error = error
        self.calls = []

    async def get_message(self, sent_to, timeout_ms, received_after=None):
        self.calls.append((sent_to, timeout_ms, received_after))
        if self.error:
            raise self.error
        return self.message


class SilentMailbox(FakeMailbox):
    def __init__(self):
        super().__init__(error=MailboxTimeoutError("No email for a@b.com within 60s"))


# ====================================================================
# Data helpers
# ====================================================================

def live_state():
    """A storage_state() payload as Playwright returns it."""
    return {
        "cookies": [
            {
                "name": "sessionKey", "value": "sk-live", "domain": ".app.example",
                "path": "/", "expires": 1893456000.5, "httpOnly": True,
                "secure": True, "sameSite": "Lax",
            },
        ],
        "origins": [
            {"origin": APP_URL, "localStorage": [{"name": "theme", "value": "dark"}]},
        ],
    }


def encode_state(state):
    return base64.b64encode(json.dumps(state).encode("utf-8")).decode("ascii")


def magic_message(href="https://app.example/magic/xyz"):
    html = (
        '<p>Sign in</p>'
        '<a href="https://help.other.example/faq">Help</a>'
        f'<a href="{href}">Log in</a>'
    )
    return MailMessage(id="m-1", subject="Your login link", html=html)


# ====================================================================
# Fixtures
# ====================================================================

@pytest.fixture
def settings():
    return AuthSettings(
        app_url=APP_URL,
        settle_ms=0,
        post_submit_wait_ms=0,
        mailbox_timeout_ms=1_000,
        magic_link_timeout_ms=1_000,
    )


@pytest.fixture
def config():
    return AuthConfig(
        mailbox_api_key="key",
        mailbox_server_id="srv",
        account_email="a@b.com",
    )
