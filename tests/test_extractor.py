"""
Tests for body extraction.

Covers plain/HTML preference in multipart trees, single-part decoding,
HTML stripping robustness and the no-text failure.
"""

import re

import pytest

from mailledger.core.errors import ExtractionFailure
from mailledger.emails.extractor import BodyExtractor, RegexHtmlStripper, decode_body_data
from mailledger.emails.models import MessagePart, RawMessage
from tests.fixtures.sample_messages import b64, html_part, multipart, plain_part


class TestRegexHtmlStripper:
    """Tests for the regex HTML stripper."""

    def test_removes_tags_scripts_and_styles(self):
        stripper = RegexHtmlStripper()
        markup = (
            "<html><head><style>p { color: red; }</style>"
            "<script>alert('x')</script></head>"
            "<body><p>Transfer <b>masuk</b></p>\n\n<div>Rp 5.000</div></body></html>"
        )

        text = stripper.strip(markup)

        assert text == "Transfer masuk Rp 5.000"

    def test_decodes_entities(self):
        text = RegexHtmlStripper().strip("<p>Fara&nbsp;&amp;&nbsp;Wimboro</p>")
        assert text.replace("\xa0", " ") == "Fara & Wimboro"

    def test_malformed_markup_does_not_raise(self):
        text = RegexHtmlStripper().strip("<div><p>Pembayaran <b>QRIS</p><span class='x")
        assert "Pembayaran" in text
        assert "QRIS" in text
        assert "<" not in text

    def test_entity_encoded_tags_are_removed(self):
        text = RegexHtmlStripper().strip("<p>&lt;b&gt;Gaji&lt;/b&gt;</p>")
        assert text == "Gaji"


class TestBodyExtractor:
    """Tests for BodyExtractor.extract."""

    def test_plain_part_preferred_verbatim(self):
        """Plain text wins over HTML and is returned unmodified."""
        plain = "  Transfer masuk\nRp 5.000.000  "
        payload = multipart(html_part("<p>HTML version</p>"), plain_part(plain))

        assert BodyExtractor().extract(payload) == plain

    def test_html_only_has_no_tag_fragments(self):
        payload = multipart(html_part("<table><tr><td>Pembayaran</td><td>Rp 25.000</td></tr></table>"))

        text = BodyExtractor().extract(payload)

        assert "Pembayaran" in text
        assert re.search(r"<[^>]*>", text) is None

    def test_depth_first_search_into_nested_parts(self):
        payload = multipart(
            multipart(
                html_part("<p>nested html</p>"),
                multipart(plain_part("deep plain")),
                mime_type="multipart/related",
            ),
            plain_part("later plain"),
            mime_type="multipart/mixed",
        )

        assert BodyExtractor().extract(payload) == "deep plain"

    def test_single_part_html_is_stripped(self):
        payload = MessagePart(mime_type="text/html", data=b64("<h1>Gaji</h1> bulan ini"))
        assert BodyExtractor().extract(payload) == "Gaji bulan ini"

    def test_single_part_plain(self):
        assert BodyExtractor().extract(plain_part("Setoran tunai")) == "Setoran tunai"

    def test_empty_body_raises(self):
        with pytest.raises(ExtractionFailure):
            BodyExtractor().extract(plain_part("   \n  "))

    def test_no_parts_and_no_data_raises(self):
        with pytest.raises(ExtractionFailure):
            BodyExtractor().extract(MessagePart(mime_type="multipart/mixed"))

    def test_attachments_are_ignored(self):
        attachment = MessagePart(mime_type="text/plain", data=b64("csv,data"), filename="x.csv")
        payload = multipart(attachment, html_part("<p>body</p>"), mime_type="multipart/mixed")

        assert BodyExtractor().extract(payload) == "body"

    def test_undecodable_part_is_skipped(self):
        broken = MessagePart(mime_type="text/plain", data="Q")
        payload = multipart(broken, html_part("<p>fallback</p>"))

        assert BodyExtractor().extract(payload) == "fallback"

    def test_custom_stripper_is_used(self):
        class Upper:
            def strip(self, markup: str) -> str:
                return markup.upper()

        payload = MessagePart(mime_type="text/html", data=b64("abc"))
        assert BodyExtractor(stripper=Upper()).extract(payload) == "ABC"


class TestModels:
    """Tests for message models built from Gmail API payloads."""

    def test_from_api_and_headers(self):
        data = {
            "id": "m1",
            "threadId": "t1",
            "labelIds": ["UNREAD", "INBOX"],
            "snippet": "Transfer",
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [
                    {"name": "Subject", "value": "Transfer Masuk"},
                    {"name": "From", "value": "bank@example.com"},
                    {"name": "Date", "value": "Mon, 15 Jan 2024 10:00:00 +0700"},
                ],
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": b64("hello")}},
                    {"mimeType": "text/html", "body": {"size": 0}},
                ],
            },
        }

        message = RawMessage.from_api(data)

        assert message.id == "m1"
        assert message.headers.subject == "Transfer Masuk"
        assert message.headers.sender == "bank@example.com"
        assert len(message.payload.parts) == 2
        assert BodyExtractor().extract(message.payload) == "hello"

    def test_decode_body_data_repairs_padding(self):
        assert decode_body_data(b64("ab")) == "ab"
