"""Mail access and body extraction.

This module handles:
- Gmail REST access (search, fetch, label)
- Depth-first plain-text extraction from multipart bodies
- Regex based HTML stripping
"""

from mailledger.emails.config import MailConfig
from mailledger.emails.extractor import BodyExtractor, HtmlStripper, RegexHtmlStripper
from mailledger.emails.gmail_client import (
    GmailClient,
    MailClient,
    StaticTokenProvider,
    TokenProvider,
    gmail_client_factory,
)
from mailledger.emails.models import MessagePart, MessageRef, RawMessage

__all__ = [
    "MailConfig",
    "BodyExtractor",
    "HtmlStripper",
    "RegexHtmlStripper",
    "GmailClient",
    "MailClient",
    "StaticTokenProvider",
    "TokenProvider",
    "gmail_client_factory",
    "MessagePart",
    "MessageRef",
    "RawMessage",
]
