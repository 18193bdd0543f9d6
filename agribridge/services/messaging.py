"""
Outbound message handoff

Checkout ends by opening a pre-filled WhatsApp chat with the order
summary. The handoff is fire-and-forget: nothing is awaited and a failure
to open is logged, never raised.
"""
import logging
import webbrowser
from typing import List, Protocol
from urllib.parse import quote

logger = logging.getLogger(__name__)

WHATSAPP_BASE_URL = "https://wa.me/"


def build_whatsapp_url(phone_number: str, message: str) -> str:
    """wa.me link that opens a chat with message pre-filled."""
    return f"{WHATSAPP_BASE_URL}{phone_number}?text={quote(message, safe='')}"


class MessageHandoff(Protocol):
    def open(self, url: str) -> None: ...


class BrowserHandoff:
    """Opens the link in a new browser tab (local/desktop use)."""

    def open(self, url: str) -> None:
        try:
            webbrowser.open_new_tab(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open message link: {e}")


class RecordingHandoff:
    """Keeps links for the caller to deliver, e.g. in an API response."""

    def __init__(self):
        self.sent: List[str] = []

    def open(self, url: str) -> None:
        self.sent.append(url)
        logger.debug(f"Queued message link ({len(url)} chars)")
