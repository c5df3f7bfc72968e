"""
Error taxonomy for the reconciliation pipeline.

Leaf components raise these; the orchestrator catches them at the
per-message, per-target or per-account boundary.
"""

from typing import Optional


class MailLedgerError(Exception):
    """Base exception for all pipeline errors."""

    pass


class ExtractionFailure(MailLedgerError):
    """Raised when a message body has no recoverable text."""

    pass


class ParseFailure(MailLedgerError):
    """Raised when extracted text cannot become a transaction record."""

    def __init__(self, reason: str, raw_response: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.raw_response = raw_response


class LLMError(ParseFailure):
    """Raised when the LLM call itself fails (timeout, status, empty envelope)."""

    pass


class PersistenceFailure(MailLedgerError):
    """Raised when a ledger write did not complete."""

    pass


class NotificationFailure(MailLedgerError):
    """Raised when delivery to a single notification target failed."""

    def __init__(self, target: str, message: str):
        super().__init__(f"{target}: {message}")
        self.target = target


class ConfigurationFailure(MailLedgerError):
    """Raised when required settings are missing."""

    pass


class MailClientError(MailLedgerError):
    """Raised when the mail provider rejects or fails a request."""

    pass
