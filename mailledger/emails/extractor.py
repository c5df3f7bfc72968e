"""Plain-text extraction from nested message bodies."""

from __future__ import annotations

import base64
import binascii
import html
import logging
import re
from typing import Protocol

from mailledger.core.errors import ExtractionFailure
from mailledger.emails.models import MessagePart

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_OPEN_TAG_RE = re.compile(r"<[^>]*$")
_WS_RE = re.compile(r"\s+")


class HtmlStripper(Protocol):
    """Turns an HTML document into plain text. Must never raise."""

    def strip(self, markup: str) -> str: ...


class RegexHtmlStripper:
    """Syntactic tag removal plus whitespace collapse.

    Not an HTML parser: malformed markup only yields noisier text.
    """

    def strip(self, markup: str) -> str:
        text = _SCRIPT_RE.sub(" ", markup)
        text = _STYLE_RE.sub(" ", text)
        text = _TAG_RE.sub(" ", text)
        text = _OPEN_TAG_RE.sub(" ", text)
        # entities may decode into markup (&lt;b&gt;)
        text = _TAG_RE.sub(" ", html.unescape(text))
        return _WS_RE.sub(" ", text).strip()


def decode_body_data(data: str) -> str:
    """Decode URL-safe base64 body data into text.

    Raises:
        ValueError: if the data is not valid base64
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid body data: {e}") from e
    return raw.decode("utf-8", errors="replace")


class BodyExtractor:
    """Produces a single plain-text string from a message body tree.

    Policy:
    1. Multipart: the first `text/plain` part found depth-first wins verbatim.
    2. Otherwise the first `text/html` part found depth-first, stripped.
    3. Single part: decode own payload; HTML is stripped.
    """

    def __init__(self, stripper: HtmlStripper | None = None):
        self.stripper = stripper or RegexHtmlStripper()

    def extract(self, payload: MessagePart) -> str:
        """Return extracted text.

        Raises:
            ExtractionFailure: if the body has no recoverable text
        """
        if payload.is_multipart:
            text = self._first_text(payload, "text/plain")
            if text is None:
                html_text = self._first_text(payload, "text/html")
                text = self.stripper.strip(html_text) if html_text is not None else None
        else:
            text = self._decode_single(payload)

        if text is None or not text.strip():
            logger.warning("[EXTRACTOR] No extractable text in message body")
            raise ExtractionFailure("No extractable text")

        return text

    def _decode_single(self, part: MessagePart) -> str | None:
        content = self._decode(part)
        if content is None:
            return None
        if part.mime_type == "text/html":
            return self.stripper.strip(content)
        return content

    def _first_text(self, node: MessagePart, mime_type: str) -> str | None:
        """Depth-first search for the first part of `mime_type` with decodable text."""
        for part in node.parts:
            if part.is_multipart:
                found = self._first_text(part, mime_type)
                if found is not None:
                    return found
            elif part.mime_type == mime_type and not part.filename:
                content = self._decode(part)
                if content is not None and content.strip():
                    return content
        return None

    def _decode(self, part: MessagePart) -> str | None:
        if not part.data:
            return None
        try:
            return decode_body_data(part.data)
        except ValueError as e:
            logger.debug(f"[EXTRACTOR] Skipping undecodable {part.mime_type} part: {e}")
            return None
