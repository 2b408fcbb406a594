"""
Statement Orchestrator Module

Drives uploaded statements through extraction and parsing, persists the
results, and keeps the owning card account's limit figures current.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Iterator

import yaml

from statement_parser.exceptions import ExtractionError
from statement_parser.models import ExtractedSummary, ExtractedTransaction
from statement_parser.parser import StatementParser
from statement_parser.text_extractor import TextExtractor

from .account_matcher import AccountMatcher
from .exceptions import StatementBusy, StatementNotFound
from .records import AccountAggregate, StatementRecord, StatementStatus
from .stores import AccountStore, DocumentStore, NotificationSink, StatementStore, TransactionStore

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of processing one statement."""

    statement_id: str
    success: bool
    status: StatementStatus
    transactions_created: int = 0
    rows_skipped: int = 0
    strategy: str | None = None
    account_id: str | None = None
    summary: ExtractedSummary | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "statement_id": self.statement_id,
            "success": self.success,
            "status": self.status.value,
            "transactions_created": self.transactions_created,
            "rows_skipped": self.rows_skipped,
            "strategy": self.strategy,
            "account_id": self.account_id,
            "summary": self.summary.to_dict() if self.summary else None,
            "error": self.error,
            "warnings": self.warnings,
        }


@dataclass
class BatchProcessingResult:
    """Outcome of processing every pending statement."""

    processed: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)
    results: list[ProcessingResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "errors": self.errors,
        }


class StatementOrchestrator:
    """Runs the statement pipeline and manages each statement's status.

    Status flow: uploaded -> processing -> processed | failed. Only one run per
    statement id may be in flight at a time.
    """

    EVENT_COMPLETED = "statement.processing_completed"
    EVENT_FAILED = "statement.processing_failed"

    def __init__(
        self,
        statements: StatementStore,
        transactions: TransactionStore,
        accounts: AccountStore,
        documents: DocumentStore,
        config_dir: Path | str | None = None,
        extractor: TextExtractor | None = None,
        parser: StatementParser | None = None,
        notifier: NotificationSink | None = None,
        account_matcher: AccountMatcher | None = None
    ):
        """Initialize the orchestrator.

        Args:
            statements: Statement record store
            transactions: Transaction store
            accounts: Card account store
            documents: Source of uploaded statement bytes
            config_dir: Path to configuration directory
            extractor: Text extractor (built from config_dir if omitted)
            parser: Statement parser (built from config_dir if omitted)
            notifier: Optional sink for completed/failed events
            account_matcher: Account correlation (default lookups if omitted)
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.statements = statements
        self.transactions = transactions
        self.accounts = accounts
        self.documents = documents
        self.extractor = extractor or TextExtractor(self.config_dir)
        self.parser = parser or StatementParser(self.config_dir)
        self.notifier = notifier
        self.account_matcher = account_matcher or AccountMatcher(accounts)

        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._load_config()

    def _load_config(self) -> None:
        """Load feature switches from statement_processing.yaml."""
        self.account_matching_enabled = True
        self.notifications_enabled = True

        config_file = self.config_dir / "statement_processing.yaml"
        if not config_file.exists():
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        self.account_matching_enabled = bool(
            (config.get("account_matching") or {}).get("enabled", True)
        )
        self.notifications_enabled = bool(
            (config.get("notifications") or {}).get("enabled", True)
        )

    @contextmanager
    def _claim(self, statement_id: str) -> Iterator[None]:
        with self._lock:
            if statement_id in self._in_flight:
                raise StatementBusy(f"Statement {statement_id} is already being processed")
            self._in_flight.add(statement_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(statement_id)

    def _get_statement(self, statement_id: str) -> StatementRecord:
        statement = self.statements.get_statement(statement_id)
        if statement is None:
            raise StatementNotFound(f"Statement not found: {statement_id}")
        return statement

    def process_statement(
        self,
        statement_id: str,
        user_id: str | None = None,
        force: bool = False
    ) -> ProcessingResult:
        """Extract, parse and persist one statement.

        Document-level failures are recorded on the statement (status failed)
        and returned as an unsuccessful result rather than raised.

        Args:
            statement_id: Statement to process
            user_id: User credited with the processing
            force: Take over a statement left in "processing" by an earlier run

        Returns:
            ProcessingResult

        Raises:
            StatementNotFound: Unknown statement id
            StatementBusy: The statement is being processed already
        """
        with self._claim(statement_id):
            statement = self._get_statement(statement_id)
            if statement.status == StatementStatus.PROCESSING and not force:
                raise StatementBusy(f"Statement {statement_id} is marked as processing")
            return self._process(statement, user_id)

    def reprocess_statement(self, statement_id: str, user_id: str | None = None) -> ProcessingResult:
        """Discard a statement's transactions and run the pipeline again from any status."""
        with self._claim(statement_id):
            statement = self._get_statement(statement_id)
            logger.info(f"Reprocessing statement {statement_id} (was {statement.status.value})")
            return self._process(statement, user_id)

    def process_all_pending(self, user_id: str | None = None) -> BatchProcessingResult:
        """Process every pending statement in upload order.

        A failure in one statement is recorded and the batch carries on.
        """
        batch = BatchProcessingResult()
        pending = self.statements.find_pending()
        logger.info(f"Processing {len(pending)} pending statements")

        for statement in pending:
            try:
                result = self.process_statement(statement.id, user_id, force=True)
            except Exception as e:
                logger.error(f"Error processing statement {statement.id}: {e}")
                batch.failed += 1
                batch.errors.append({"statement_id": statement.id, "error": str(e)})
                continue

            batch.results.append(result)
            if result.success:
                batch.processed += 1
            else:
                batch.failed += 1
                batch.errors.append({"statement_id": statement.id, "error": result.error})

        logger.info(f"Batch finished: {batch.processed} processed, {batch.failed} failed")
        return batch

    def get_processing_stats(self) -> dict:
        """Statement counts by status and transaction verification counts."""
        by_status = self.statements.count_by_status()
        total_transactions = self.transactions.count_transactions()
        verified = self.transactions.count_transactions(verified=True)

        return {
            "statements": {
                "total": sum(by_status.values()),
                "by_status": by_status,
            },
            "transactions": {
                "total": total_transactions,
                "verified": verified,
                "unverified": total_transactions - verified,
            },
        }

    def get_statement_with_transactions(self, statement_id: str) -> dict:
        statement = self._get_statement(statement_id)
        return {
            "statement": statement.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions.list_by_statement(statement_id)],
        }

    # Pipeline

    def _process(self, statement: StatementRecord, user_id: str | None) -> ProcessingResult:
        self.statements.update_status(statement.id, StatementStatus.PROCESSING)
        logger.info(f"Processing statement {statement.id} ({statement.file_name or statement.document_ref})")

        removed = self.transactions.delete_by_statement(statement.id)
        if removed:
            logger.info(f"Removed {removed} existing transactions of statement {statement.id}")

        try:
            data = self.documents.get_document(statement.document_ref)
        except KeyError:
            return self._fail(statement, f"Document not found: {statement.document_ref}")

        try:
            extraction = self.extractor.extract(data, statement.media_type)
            return self._persist(statement, extraction.text, extraction.strategy, user_id)
        except ExtractionError as e:
            return self._fail(statement, str(e))
        except Exception as e:
            logger.error(f"Unexpected error processing statement {statement.id}: {e}")
            self._fail(statement, str(e))
            raise

    def _persist(
        self,
        statement: StatementRecord,
        text: str,
        strategy: str,
        user_id: str | None
    ) -> ProcessingResult:
        parsed = self.parser.parse_text(text)

        valid: list[ExtractedTransaction] = []
        warnings = list(parsed.warnings)
        for txn in parsed.transactions:
            if txn.is_valid():
                valid.append(txn)
            else:
                logger.warning(f"Skipping invalid transaction in statement {statement.id}: {txn.to_dict()}")
                warnings.append(f"Skipped invalid transaction: {txn.description!r}")

        stored: list[ExtractedTransaction] = []
        for txn in valid:
            try:
                self.transactions.create_transaction(statement.id, statement.holder_id, txn)
            except Exception as e:
                logger.warning(f"Could not save transaction of statement {statement.id}: {e}")
                warnings.append(f"Skipped unsaved transaction {txn.description!r}: {e}")
                continue
            stored.append(txn)

        # Totals reflect the rows actually persisted
        summary = parsed.summary
        summary.total_transactions = len(stored)
        summary.total_amount = sum((t.amount for t in stored), Decimal("0"))
        self.statements.save_extracted_data(statement.id, summary)

        account = self._update_account(statement, summary)

        self.statements.update_status(statement.id, StatementStatus.PROCESSED, user_id=user_id)
        logger.info(f"Statement {statement.id} processed: {len(stored)} transactions created")

        self._notify(self.EVENT_COMPLETED, {
            "statement_id": statement.id,
            "holder_id": statement.holder_id,
            "transactions_created": len(stored),
        })

        return ProcessingResult(
            statement_id=statement.id,
            success=True,
            status=StatementStatus.PROCESSED,
            transactions_created=len(stored),
            rows_skipped=parsed.skipped_count + len(parsed.transactions) - len(stored),
            strategy=strategy,
            account_id=account.id if account else None,
            summary=summary,
            warnings=warnings,
        )

    def _update_account(self, statement: StatementRecord, summary: ExtractedSummary) -> AccountAggregate | None:
        """Copy the summary's limit figures onto the statement's account, best effort."""
        if not self.account_matching_enabled:
            return None

        if not (summary.card_limit or summary.available_limit or summary.outstanding_amount):
            logger.info(f"Statement {statement.id} has no limit figures; account left unchanged")
            return None

        try:
            account = self.account_matcher.find(statement)
            if account is None:
                return None
            self.accounts.update_limits(
                account.id,
                summary.card_limit,
                summary.available_limit,
                summary.outstanding_amount,
            )
        except Exception as e:
            logger.warning(f"Could not update account for statement {statement.id}: {e}")
            return None

        logger.info(f"Updated account {account.id} from statement {statement.id}")
        return account

    def _fail(self, statement: StatementRecord, error: str) -> ProcessingResult:
        logger.error(f"Statement {statement.id} failed: {error}")
        self.statements.update_status(statement.id, StatementStatus.FAILED, error=error)
        self._notify(self.EVENT_FAILED, {
            "statement_id": statement.id,
            "holder_id": statement.holder_id,
            "error": error,
        })
        return ProcessingResult(
            statement_id=statement.id,
            success=False,
            status=StatementStatus.FAILED,
            error=error,
        )

    def _notify(self, event: str, payload: dict) -> None:
        if self.notifier is None or not self.notifications_enabled:
            return
        try:
            self.notifier.notify(event, payload)
        except Exception as e:
            logger.error(f"Notification {event} failed: {e}")
