"""
Tests for email_login.py — magic-link selection and the login steps.
"""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from chatauth.auth.email_login import EmailLoginFlow, find_magic_link
from chatauth.errors import (
    FailureKind,
    LinkNotFoundError,
    LoginNavigationTimeoutError,
    MailboxTimeoutError,
)
from chatauth.mailbox import MailMessage

from conftest import APP_URL, FakeMailbox, FakePage, SilentMailbox, magic_message

MAGIC = f"{APP_URL}/magic/xyz"
EMAIL_BOX = ("textbox", "Email")
CONTINUE = ("button", "Continue with email")


def _login_page(magic_lands_on=f"{APP_URL}/new"):
    return FakePage(routes={MAGIC: magic_lands_on}, visible=[EMAIL_BOX, CONTINUE])


# ====================================================================
# Link selection
# ====================================================================

class TestFindMagicLink:

    def test_first_app_link_wins(self):
        links = ["https://other.example/x", MAGIC, f"{APP_URL}/magic/second"]
        assert find_magic_link(links, "app.example") == MAGIC

    def test_subdomain_accepted(self):
        assert find_magic_link(["https://auth.app.example/m/1"], "app.example") == "https://auth.app.example/m/1"

    def test_lookalike_host_rejected(self):
        links = ["https://app.example.evil.com/m/1", "https://notapp.example/m/2"]
        assert find_magic_link(links, "app.example") is None

    def test_non_http_links_ignored(self):
        assert find_magic_link(["mailto:support@app.example"], "app.example") is None


class TestAuthenticatedUrl:

    @pytest.mark.parametrize("url", [
        f"{APP_URL}/new", f"{APP_URL}/chat", f"{APP_URL}/chat/abc-123", f"{APP_URL}/", APP_URL,
    ])
    def test_authenticated_routes(self, config, settings, url):
        flow = EmailLoginFlow(config, FakeMailbox(), settings)
        assert flow.is_authenticated_url(url)

    @pytest.mark.parametrize("url", [
        f"{APP_URL}/login", f"{APP_URL}/magic/xyz", "https://other.example/new",
        f"{APP_URL}/newsletter", f"{APP_URL}/chatbot-pricing",
    ])
    def test_unauthenticated_routes(self, config, settings, url):
        flow = EmailLoginFlow(config, FakeMailbox(), settings)
        assert not flow.is_authenticated_url(url)


# ====================================================================
# Full flow
# ====================================================================

class TestPerformLogin:

    @pytest.mark.asyncio
    async def test_successful_login(self, config, settings):
        mailbox = FakeMailbox(magic_message())
        page = _login_page()

        await EmailLoginFlow(config, mailbox, settings).perform_login(page)

        assert page.visited == [f"{APP_URL}/login", MAGIC]
        assert page.filled == [(EMAIL_BOX, "a@b.com")]
        assert page.clicked == [CONTINUE]
        assert page.url == f"{APP_URL}/new"

    @pytest.mark.asyncio
    async def test_mailbox_queried_for_account_after_submit(self, config, settings):
        mailbox = FakeMailbox(magic_message())
        await EmailLoginFlow(config, mailbox, settings).perform_login(_login_page())

        sent_to, timeout_ms, received_after = mailbox.calls[0]
        assert sent_to == "a@b.com"
        assert timeout_ms == settings.mailbox_timeout_ms
        assert received_after is not None and received_after.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_email_input_raises(self, config, settings):
        page = FakePage(visible=[CONTINUE])
        mailbox = FakeMailbox(magic_message())
        with pytest.raises(PlaywrightTimeout):
            await EmailLoginFlow(config, mailbox, settings).perform_login(page)
        assert mailbox.calls == []

    @pytest.mark.asyncio
    async def test_mailbox_timeout_propagates(self, config, settings):
        with pytest.raises(MailboxTimeoutError) as exc_info:
            await EmailLoginFlow(config, SilentMailbox(), settings).perform_login(_login_page())
        assert exc_info.value.kind is FailureKind.MAILBOX_TIMEOUT

    @pytest.mark.asyncio
    async def test_message_without_app_link(self, config, settings):
        message = MailMessage(id="m", html='<a href="https://other.example/x">x</a>')
        page = _login_page()
        with pytest.raises(LinkNotFoundError) as exc_info:
            await EmailLoginFlow(config, FakeMailbox(message), settings).perform_login(page)
        assert exc_info.value.kind is FailureKind.LINK_NOT_FOUND
        assert MAGIC not in page.visited

    @pytest.mark.asyncio
    async def test_link_bouncing_to_login_times_out(self, config, settings):
        page = _login_page(magic_lands_on=f"{APP_URL}/login?error=expired")
        with pytest.raises(LoginNavigationTimeoutError) as exc_info:
            await EmailLoginFlow(config, FakeMailbox(magic_message()), settings).perform_login(page)
        assert exc_info.value.kind is FailureKind.LOGIN_NAVIGATION_TIMEOUT
        assert "expired" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_link_navigation_timeout(self, config, settings):
        page = FakePage(
            routes={MAGIC: PlaywrightTimeout("Timeout 1000ms exceeded")},
            visible=[EMAIL_BOX, CONTINUE],
        )
        with pytest.raises(LoginNavigationTimeoutError):
            await EmailLoginFlow(config, FakeMailbox(magic_message()), settings).perform_login(page)
