"""Data models for mail messages as returned by the mail provider."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MessageHeader(BaseModel):
    """Single `name: value` header pair."""

    name: str
    value: str


class MessagePart(BaseModel):
    """Node of a (possibly nested) message body tree."""

    mime_type: str = Field(default="text/plain", description="Declared content type")
    data: str | None = Field(
        default=None, description="URL-safe base64 body data, if the node has any"
    )
    filename: str | None = Field(default=None, description="Attachment filename")
    headers: list[MessageHeader] = Field(default_factory=list)
    parts: list[MessagePart] = Field(default_factory=list, description="Sub-parts")

    @property
    def is_multipart(self) -> bool:
        return bool(self.parts)

    @classmethod
    def from_api(cls, payload: dict) -> MessagePart:
        """Build a part tree from a Gmail API `payload` object."""
        body = payload.get("body") or {}
        return cls(
            mime_type=(payload.get("mimeType") or "text/plain").lower(),
            data=body.get("data"),
            filename=payload.get("filename") or None,
            headers=[
                MessageHeader(name=h.get("name", ""), value=h.get("value", ""))
                for h in payload.get("headers") or []
            ],
            parts=[cls.from_api(p) for p in payload.get("parts") or []],
        )


class MessageHeaders(BaseModel):
    """Headers the pipeline cares about."""

    subject: str = ""
    sender: str = ""
    to: str = ""
    date: str = ""


class MessageRef(BaseModel):
    """Reference to a candidate message returned by a search."""

    id: str
    thread_id: str | None = None


class RawMessage(BaseModel):
    """Full message fetched from the mail provider. Read-only to the pipeline."""

    id: str = Field(..., description="Provider message id")
    thread_id: str | None = Field(default=None)
    label_ids: list[str] = Field(default_factory=list)
    snippet: str = Field(default="")
    payload: MessagePart = Field(default_factory=MessagePart)

    @property
    def headers(self) -> MessageHeaders:
        found = {h.name.lower(): h.value for h in self.payload.headers}
        return MessageHeaders(
            subject=found.get("subject", ""),
            sender=found.get("from", ""),
            to=found.get("to", ""),
            date=found.get("date", ""),
        )

    @classmethod
    def from_api(cls, data: dict) -> RawMessage:
        return cls(
            id=data["id"],
            thread_id=data.get("threadId"),
            label_ids=list(data.get("labelIds") or []),
            snippet=data.get("snippet") or "",
            payload=MessagePart.from_api(data.get("payload") or {}),
        )
