"""
Reconciliation orchestrator.

Drives one processing cycle per mail account:
1. Fetch candidate messages
2. Per message, strictly in order: extract, parse, dedupe, persist, label
3. Notify about the newly persisted transactions
4. Emit a RunSummary

Failures are isolated per message and per account: one bad email never
aborts the batch, and one broken account never aborts the others.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

import structlog

from mailledger.core.config import Settings, get_settings, validate_settings
from mailledger.core.errors import (
    ConfigurationFailure,
    ExtractionFailure,
    ParseFailure,
    PersistenceFailure,
)
from mailledger.emails.config import MailConfig
from mailledger.emails.extractor import BodyExtractor
from mailledger.emails.gmail_client import MailClient, MailClientFactory, gmail_client_factory
from mailledger.emails.models import RawMessage
from mailledger.ledger.duplicates import DuplicateResolver, KeyFields
from mailledger.ledger.ledger import LedgerClient, LedgerRecord, SqlLedger
from mailledger.ledger.repositories import InsertOutcome
from mailledger.notifications.batcher import NotificationBatcher, NotificationMode
from mailledger.notifications.config import NotificationConfig
from mailledger.notifications.waha_client import NotificationClient, WahaClient
from mailledger.parsing.config import LLMConfig
from mailledger.parsing.llm_client import create_llm_client
from mailledger.parsing.models import ParsedTransaction
from mailledger.parsing.parser import TransactionParser
from mailledger.reconciliation.config import ReconciliationConfig
from mailledger.reconciliation.metrics import ReconciliationMetrics, RunSummary

logger = structlog.get_logger("reconcile")


class MessageOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    ERROR = "error"


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ReconciliationOrchestrator:
    """Per-account email to ledger reconciliation."""

    def __init__(
        self,
        mail: MailClientFactory,
        parser: Optional[TransactionParser],
        ledger: LedgerClient,
        batcher: NotificationBatcher,
        config: Optional[ReconciliationConfig] = None,
        extractor: Optional[BodyExtractor] = None,
        resolver: Optional[DuplicateResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
        metrics: Optional[ReconciliationMetrics] = None,
    ):
        """
        Args:
            mail: Builds the mail collaborator for an account id
            parser: Transaction parser; None when the LLM is not configured,
                which fails every account cycle with a configuration error
            ledger: Ledger collaborator
            batcher: Notification batcher
            config: Cycle configuration
            extractor: Body extractor (regex HTML stripping by default)
            resolver: Duplicate resolver (bank in the key only when the config asks)
            clock: Returns the current time; its date is "today" for parsing
            metrics: Run history sink
        """
        self.mail_factory = mail
        self.parser = parser
        self.ledger = ledger
        self.batcher = batcher
        self.config = config or ReconciliationConfig()
        self.extractor = extractor or BodyExtractor()
        self.resolver = resolver or DuplicateResolver(include_bank=self.config.dedupe_include_bank)
        self.clock = clock or _local_now
        self.metrics = metrics or ReconciliationMetrics(self.config.history_size)

        self._stop_requested = False
        self._run_counter = 0

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Finish the in-flight message, then leave the rest for the next poll."""
        self._stop_requested = True
        logger.info("reconcile.stop_requested")

    def _next_run_id(self, started_at: datetime) -> str:
        self._run_counter += 1
        return f"reconcile-{started_at.strftime('%Y%m%d-%H%M%S')}-{self._run_counter}"

    async def process_all_accounts(self) -> List[RunSummary]:
        """Process every configured account sequentially."""
        self._stop_requested = False
        summaries: List[RunSummary] = []

        for account_id in self.config.accounts:
            if self._stop_requested:
                logger.info("reconcile.accounts.skipped_on_stop", account_id=account_id)
                break
            summaries.append(await self.process_account(account_id))

        logger.info(
            "reconcile.cycle.completed",
            accounts=len(summaries),
            processed=sum(s.processed for s in summaries),
            duplicates=sum(s.duplicates for s in summaries),
            errors=sum(s.errors for s in summaries),
        )
        return summaries

    async def process_account(self, account_id: str) -> RunSummary:
        """Run one cycle for `account_id`. Never raises."""
        started_at = self.clock()
        run_id = self._next_run_id(started_at)
        structlog.contextvars.bind_contextvars(account_id=account_id, run_id=run_id)

        processed = duplicates = errors = 0
        notified_mode = NotificationMode.NONE
        stopped_early = False
        mail: Optional[MailClient] = None

        try:
            logger.info("reconcile.account.started")
            if self.parser is None:
                raise ConfigurationFailure("LLM client is not configured")

            mail = self.mail_factory(account_id)
            refs = await mail.list_candidates(self.config.search_query)
            messages = await mail.get_messages(refs) if refs else []
            logger.info("reconcile.account.fetched", candidates=len(refs), fetched=len(messages))

            today = started_at.date()
            new_transactions: List[ParsedTransaction] = []

            for index, message in enumerate(messages):
                if self._stop_requested:
                    stopped_early = True
                    logger.info("reconcile.account.stopping", remaining=len(messages) - index)
                    break

                outcome, transaction = await self._process_message(
                    mail, message, account_id, today
                )
                if outcome is MessageOutcome.PROCESSED and transaction is not None:
                    processed += 1
                    new_transactions.append(transaction)
                elif outcome is MessageOutcome.DUPLICATE:
                    duplicates += 1
                else:
                    errors += 1

            notified_mode = await self.batcher.notify(new_transactions, account_id)

        except Exception as exc:
            logger.exception("reconcile.account.failed", error=str(exc))
            summary = RunSummary(
                account_id=account_id,
                run_id=run_id,
                started_at=started_at,
                ended_at=self.clock(),
                processed=processed,
                duplicates=duplicates,
                errors=errors + 1,
                notified_mode=notified_mode,
                failed=True,
                stopped_early=stopped_early,
                error_message=str(exc),
            )
            self.metrics.record(summary)
            return summary

        finally:
            if mail is not None:
                await self._close_mail(mail)
            structlog.contextvars.unbind_contextvars("account_id", "run_id")

        summary = RunSummary(
            account_id=account_id,
            run_id=run_id,
            started_at=started_at,
            ended_at=self.clock(),
            processed=processed,
            duplicates=duplicates,
            errors=errors,
            notified_mode=notified_mode,
            stopped_early=stopped_early,
        )
        self.metrics.record(summary)
        logger.info(
            "reconcile.account.completed",
            account_id=account_id,
            run_id=run_id,
            processed=processed,
            duplicates=duplicates,
            errors=errors,
            notified_mode=notified_mode.value,
            stopped_early=stopped_early,
        )
        return summary

    async def _process_message(
        self, mail: MailClient, message: RawMessage, account_id: str, today
    ) -> Tuple[MessageOutcome, Optional[ParsedTransaction]]:
        log = logger.bind(email_id=message.id, subject=message.headers.subject)
        label = True
        transaction: Optional[ParsedTransaction] = None
        assert self.parser is not None

        try:
            text = self.extractor.extract(message.payload)
            transaction = await self.parser.parse(text, today)

            candidate = KeyFields.from_transaction(transaction)
            existing = await self.ledger.list_existing(self.config.dedupe_scope(account_id))
            if self.resolver.is_duplicate(candidate, existing):
                log.info(
                    "reconcile.message.duplicate",
                    description=transaction.description,
                    date=candidate.date,
                )
                outcome = MessageOutcome.DUPLICATE
            else:
                result = await self.ledger.insert(
                    LedgerRecord(
                        transaction=transaction,
                        email_id=message.id,
                        account_id=account_id,
                        user_id=self.config.user_id_for(account_id),
                        dedupe_partition=self.config.dedupe_partition(account_id, transaction.bank),
                    )
                )
                if result is InsertOutcome.DUPLICATE:
                    log.info("reconcile.message.duplicate_on_insert")
                    outcome = MessageOutcome.DUPLICATE
                else:
                    log.info(
                        "reconcile.message.persisted",
                        amount=str(transaction.amount),
                        category=transaction.category,
                    )
                    outcome = MessageOutcome.PROCESSED

        except ExtractionFailure as exc:
            log.warning("reconcile.message.extraction_failed", error=str(exc))
            outcome = MessageOutcome.ERROR
        except ParseFailure as exc:
            log.warning("reconcile.message.parse_failed", reason=exc.reason)
            outcome = MessageOutcome.ERROR
        except PersistenceFailure as exc:
            log.error("reconcile.message.persist_failed", error=str(exc))
            outcome = MessageOutcome.ERROR
            label = self.config.mark_processed_on_persist_failure
        except Exception as exc:
            log.exception("reconcile.message.unexpected_error", error=str(exc))
            outcome = MessageOutcome.ERROR

        if label:
            await self._mark_processed(mail, message.id)

        return outcome, transaction if outcome is MessageOutcome.PROCESSED else None

    async def _mark_processed(self, mail: MailClient, message_id: str) -> None:
        try:
            await mail.mark_processed(message_id)
        except Exception as exc:
            logger.error("reconcile.message.label_failed", email_id=message_id, error=str(exc))

    async def _close_mail(self, mail: MailClient) -> None:
        try:
            await mail.close()
        except Exception as exc:
            logger.warning("reconcile.mail.close_failed", error=str(exc))

    async def close(self) -> None:
        """Release the shared LLM and notification handles."""
        if self.parser is not None:
            await self.parser.llm.close()
        if self.batcher.client is not None:
            await self.batcher.client.close()
        logger.info("reconcile.resources_released")


def build_orchestrator(settings: Settings) -> ReconciliationOrchestrator:
    """Wire the orchestrator and its collaborators from app settings."""
    for problem in validate_settings(settings):
        logger.warning("reconcile.config.problem", problem=problem)

    parser: Optional[TransactionParser] = None
    llm_config = LLMConfig.from_settings(settings)
    try:
        parser = TransactionParser(
            create_llm_client(llm_config),
            default_confidence=llm_config.default_confidence,
        )
    except ConfigurationFailure as exc:
        logger.error("reconcile.config.llm_unavailable", error=str(exc))

    notification_config = NotificationConfig.from_settings(settings)
    client: Optional[NotificationClient] = None
    if notification_config.enabled:
        try:
            client = WahaClient(notification_config)
        except ConfigurationFailure as exc:
            logger.error("reconcile.config.notifications_unavailable", error=str(exc))

    return ReconciliationOrchestrator(
        mail=gmail_client_factory(MailConfig.from_settings(settings)),
        parser=parser,
        ledger=SqlLedger(),
        batcher=NotificationBatcher(client, notification_config),
        config=ReconciliationConfig.from_settings(settings),
    )


_orchestrator: Optional[ReconciliationOrchestrator] = None


def get_orchestrator() -> ReconciliationOrchestrator:
    """Get or create the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(get_settings())
    return _orchestrator


def set_orchestrator(orchestrator: Optional[ReconciliationOrchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator
