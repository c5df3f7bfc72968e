"""Configuration for reconciliation cycles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from mailledger.ledger.duplicates import partition_key

if TYPE_CHECKING:
    from mailledger.core.config import Settings


class ReconciliationConfig(BaseModel):
    """Per-cycle behaviour of the orchestrator."""

    accounts: list[str] = Field(
        default_factory=lambda: ["default"], description="Accounts processed each cycle"
    )
    search_query: str = Field(
        default=(
            "subject:(Transfer OR Pembayaran OR Transaksi OR payment OR transaction) "
            "is:unread newer_than:1d"
        ),
        description="Mail query selecting candidate messages",
    )
    user_id_prefix: str = Field(
        default="email-processor-main",
        description="Stored user id is '<prefix>-<account_id>'",
    )
    mark_processed_on_persist_failure: bool = Field(
        default=True,
        description="Label a message processed even when its ledger write failed",
    )
    dedupe_per_account: bool = Field(
        default=False,
        description="Compare candidates only with entries from the same account",
    )
    dedupe_include_bank: bool = Field(
        default=False,
        description="Make the bank label part of the duplicate key",
    )
    history_size: int = Field(
        default=100, ge=1, le=10000, description="Run summaries kept in memory"
    )

    def user_id_for(self, account_id: str) -> str:
        return f"{self.user_id_prefix}-{account_id}"

    def dedupe_scope(self, account_id: str) -> Optional[str]:
        return account_id if self.dedupe_per_account else None

    def dedupe_partition(self, account_id: str, bank: Optional[str]) -> str:
        """Partition stored with an entry so the unique constraint follows the dedupe scope."""
        return partition_key(self.dedupe_scope(account_id), bank, self.dedupe_include_bank)

    @classmethod
    def from_settings(cls, settings: Settings) -> ReconciliationConfig:
        """Create ReconciliationConfig from app settings."""
        return cls(
            accounts=settings.gmail_accounts,
            search_query=settings.GMAIL_SEARCH_QUERY,
            user_id_prefix=settings.PROCESSOR_USER_ID,
            mark_processed_on_persist_failure=settings.MARK_PROCESSED_ON_PERSIST_FAILURE,
            dedupe_per_account=settings.DEDUPE_PER_ACCOUNT,
            dedupe_include_bank=settings.DEDUPE_INCLUDE_BANK,
        )
