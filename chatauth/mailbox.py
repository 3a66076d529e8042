"""
Mailbox Client
==============
Looks up the magic-link email sent to the test account.

Architecture:
    - ``BaseMailbox``      — abstract "fetch message sent to X within T"
    - ``MailosaurMailbox`` — implementation on the ``mailosaur`` SDK
    - ``extract_links``    — ``<a href>`` values from a message body

The SDK blocks while it polls; ``get_message`` runs it in a worker thread so
several contexts can wait on their inboxes in one event loop.

Security:
    - The API key is handed to the SDK and never logged.
    - Message bodies and links are never logged (they hold login tokens).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from mailosaur import MailosaurClient
from mailosaur.models import MailosaurException, SearchCriteria

from .errors import MailboxError, MailboxTimeoutError

logger = logging.getLogger(__name__)

# error_type the SDK uses when no message matched before the timeout
_SEARCH_TIMEOUT = "search_timeout"


@dataclass(frozen=True)
class MailMessage:
    """The parts of an email the login flow cares about.

    ``hrefs`` holds links already extracted by the provider; when empty the
    links are parsed out of ``html``.
    """
    id: str
    subject: str = ""
    html: str = ""
    received: str = ""
    hrefs: Tuple[str, ...] = ()

    @property
    def links(self) -> List[str]:
        if self.hrefs:
            return list(self.hrefs)
        return extract_links(self.html)


def extract_links(html: str) -> List[str]:
    """Return every ``<a href>`` target in *html*, in document order."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    return [a["href"].strip() for a in soup.find_all("a", href=True) if a["href"].strip()]


# ---------------------------------------------------------------------------
# Abstract mailbox
# ---------------------------------------------------------------------------

class BaseMailbox(ABC):
    """Contract for the mailbox provider used by the email login flow."""

    @abstractmethod
    async def get_message(
        self,
        sent_to: str,
        timeout_ms: int,
        received_after: Optional[datetime] = None,
    ) -> MailMessage:
        """Wait for a message addressed to *sent_to*.

        Raises:
            MailboxTimeoutError: nothing arrived within *timeout_ms*.
            MailboxError:        the provider failed.
        """
        ...


# ---------------------------------------------------------------------------
# Mailosaur
# ---------------------------------------------------------------------------

class MailosaurMailbox(BaseMailbox):
    """Waits on a Mailosaur server for the newest message sent to an address."""

    def __init__(
        self,
        api_key: str,
        server_id: str,
        *,
        client: Optional[MailosaurClient] = None,
    ):
        self.server_id = server_id
        self.client = client or MailosaurClient(api_key)

    async def get_message(
        self,
        sent_to: str,
        timeout_ms: int,
        received_after: Optional[datetime] = None,
    ) -> MailMessage:
        return await asyncio.to_thread(self.fetch, sent_to, timeout_ms, received_after)

    def fetch(
        self,
        sent_to: str,
        timeout_ms: int,
        received_after: Optional[datetime] = None,
    ) -> MailMessage:
        """Blocking wait: the SDK polls until a match appears or *timeout_ms* ends."""
        criteria = SearchCriteria()
        criteria.sent_to = sent_to

        kwargs = {"timeout": timeout_ms}
        if received_after is not None:
            kwargs["received_after"] = _utc(received_after)

        logger.info(f"[MAILBOX] Waiting up to {timeout_ms / 1000:.0f}s for a message")
        try:
            raw = self.client.messages.get(self.server_id, criteria, **kwargs)
        except MailosaurException as e:
            if getattr(e, "error_type", None) == _SEARCH_TIMEOUT:
                raise MailboxTimeoutError(
                    f"No email for {sent_to} within {timeout_ms / 1000:.0f}s"
                ) from e
            status = getattr(e, "http_status_code", None)
            detail = f"HTTP {status}" if status else getattr(e, "error_type", None) or "error"
            raise MailboxError(f"Mailbox lookup failed ({detail})") from e
        except requests.RequestException as e:
            raise MailboxError(f"Mailbox request failed: {e}") from e

        message = _to_message(raw)
        logger.info(f"[MAILBOX] Message received: {message.subject[:60]!r}")
        return message


def _to_message(raw: Any) -> MailMessage:
    """Flatten an SDK ``Message`` into a ``MailMessage``."""
    content = getattr(raw, "html", None)
    body = getattr(content, "body", None) or ""
    hrefs = tuple(
        link.href.strip()
        for link in (getattr(content, "links", None) or [])
        if getattr(link, "href", None) and link.href.strip()
    )
    received = getattr(raw, "received", None)
    if isinstance(received, datetime):
        received = received.isoformat()
    return MailMessage(
        id=raw.id,
        subject=getattr(raw, "subject", None) or "",
        html=body,
        received=received or "",
        hrefs=hrefs,
    )


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
