"""
Store Interfaces Module

Abstract collaborators the processing pipeline reads from and writes to, plus an
in-memory implementation of all of them.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal

from statement_parser.models import Category, ExtractedSummary, ExtractedTransaction, OrderSubcategory

from .records import (
    PENDING_STATUSES,
    AccountAggregate,
    StatementRecord,
    StatementStatus,
    StoredTransaction,
)

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Read access to uploaded statement bytes."""

    @abstractmethod
    def get_document(self, document_ref: str) -> bytes:
        """Return the raw bytes stored under ``document_ref``."""
        pass


class StatementStore(ABC):
    """Statement records and their processing state."""

    @abstractmethod
    def get_statement(self, statement_id: str) -> StatementRecord | None:
        pass

    @abstractmethod
    def update_status(
        self,
        statement_id: str,
        status: StatementStatus,
        user_id: str | None = None,
        error: str | None = None
    ) -> None:
        """Set the status; ``processed`` also stamps processed_by / processed_at."""
        pass

    @abstractmethod
    def save_extracted_data(self, statement_id: str, summary: ExtractedSummary) -> None:
        pass

    @abstractmethod
    def find_pending(self) -> list[StatementRecord]:
        """Statements waiting for processing, oldest first."""
        pass

    @abstractmethod
    def find_for_account(
        self,
        holder_id: str,
        account_name: str,
        last_four: str | None = None
    ) -> list[StatementRecord]:
        """Statements of one card account, newest first."""
        pass

    @abstractmethod
    def count_by_status(self) -> dict[str, int]:
        pass


class TransactionStore(ABC):
    """Persisted transactions."""

    @abstractmethod
    def create_transaction(
        self,
        statement_id: str,
        holder_id: str,
        transaction: ExtractedTransaction
    ) -> StoredTransaction:
        """Persist one extracted transaction, unverified."""
        pass

    @abstractmethod
    def delete_by_statement(self, statement_id: str) -> int:
        """Delete every transaction of a statement and return how many went."""
        pass

    @abstractmethod
    def list_by_statement(self, statement_id: str) -> list[StoredTransaction]:
        pass

    @abstractmethod
    def list_by_statements(
        self,
        statement_ids: list[str],
        start_date: date | None = None,
        end_date: date | None = None
    ) -> list[StoredTransaction]:
        pass

    @abstractmethod
    def count_transactions(self, verified: bool | None = None) -> int:
        pass

    @abstractmethod
    def verify_transaction(self, transaction_id: str, user_id: str | None) -> StoredTransaction:
        pass

    @abstractmethod
    def unverify_transaction(self, transaction_id: str) -> StoredTransaction:
        pass

    @abstractmethod
    def reclassify_transaction(
        self,
        transaction_id: str,
        category: Category,
        order_subcategory: OrderSubcategory | None = None,
        notes: str = ""
    ) -> StoredTransaction:
        pass


class AccountStore(ABC):
    """Card accounts and their limit figures."""

    @abstractmethod
    def get_account(self, account_id: str) -> AccountAggregate | None:
        pass

    @abstractmethod
    def list_accounts(self, holder_id: str | None = None) -> list[AccountAggregate]:
        pass

    @abstractmethod
    def find_accounts(
        self,
        holder_id: str,
        account_name: str | None = None,
        last_four: str | None = None
    ) -> list[AccountAggregate]:
        """Accounts of a holder, optionally narrowed by name and card digits."""
        pass

    @abstractmethod
    def update_limits(
        self,
        account_id: str,
        card_limit: Decimal,
        available_limit: Decimal,
        outstanding_amount: Decimal
    ) -> None:
        """Overwrite the three limit fields and nothing else."""
        pass


class NotificationSink(ABC):
    """Receives processing events. Delivery is fire-and-forget."""

    @abstractmethod
    def notify(self, event: str, payload: dict) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Writes processing events to the log."""

    def notify(self, event: str, payload: dict) -> None:
        logger.info(f"Notification {event}: {payload}")


def _names_match(left: str | None, right: str | None) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


class InMemoryStore(DocumentStore, StatementStore, TransactionStore, AccountStore):
    """Dictionary-backed implementation of every store interface."""

    def __init__(self):
        self.documents: dict[str, bytes] = {}
        self.statements: dict[str, StatementRecord] = {}
        self.transactions: dict[str, StoredTransaction] = {}
        self.accounts: dict[str, AccountAggregate] = {}

    # Seeding helpers

    def add_document(self, data: bytes, document_ref: str | None = None) -> str:
        document_ref = document_ref or str(uuid.uuid4())
        self.documents[document_ref] = data
        return document_ref

    def add_statement(self, statement: StatementRecord) -> StatementRecord:
        self.statements[statement.id] = statement
        return statement

    def add_account(self, account: AccountAggregate) -> AccountAggregate:
        self.accounts[account.id] = account
        return account

    # DocumentStore

    def get_document(self, document_ref: str) -> bytes:
        if document_ref not in self.documents:
            raise KeyError(f"Document not found: {document_ref}")
        return self.documents[document_ref]

    # StatementStore

    def get_statement(self, statement_id: str) -> StatementRecord | None:
        statement = self.statements.get(statement_id)
        if statement is None or statement.is_deleted:
            return None
        return statement

    def update_status(
        self,
        statement_id: str,
        status: StatementStatus,
        user_id: str | None = None,
        error: str | None = None
    ) -> None:
        statement = self.statements[statement_id]
        statement.status = status
        statement.processing_error = error
        if status == StatementStatus.PROCESSED:
            statement.processed_by = user_id
            statement.processed_at = datetime.now()

    def save_extracted_data(self, statement_id: str, summary: ExtractedSummary) -> None:
        self.statements[statement_id].extracted_data = summary

    def find_pending(self) -> list[StatementRecord]:
        pending = [
            s for s in self.statements.values()
            if not s.is_deleted and s.status in PENDING_STATUSES
        ]
        return sorted(pending, key=lambda s: s.created_at)

    def find_for_account(
        self,
        holder_id: str,
        account_name: str,
        last_four: str | None = None
    ) -> list[StatementRecord]:
        found = [
            s for s in self.statements.values()
            if not s.is_deleted
            and s.holder_id == holder_id
            and _names_match(s.account_name, account_name)
            and (last_four is None or s.last_four == last_four)
        ]
        return sorted(found, key=lambda s: s.created_at, reverse=True)

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in StatementStatus}
        for statement in self.statements.values():
            if not statement.is_deleted:
                counts[statement.status.value] += 1
        return counts

    # TransactionStore

    def create_transaction(
        self,
        statement_id: str,
        holder_id: str,
        transaction: ExtractedTransaction
    ) -> StoredTransaction:
        stored = StoredTransaction(
            id=str(uuid.uuid4()),
            statement_id=statement_id,
            holder_id=holder_id,
            date=transaction.date,
            description=transaction.description,
            amount=transaction.amount,
            balance=transaction.balance,
            category=transaction.category,
        )
        self.transactions[stored.id] = stored
        return stored

    def delete_by_statement(self, statement_id: str) -> int:
        doomed = [t.id for t in self.transactions.values() if t.statement_id == statement_id]
        for txn_id in doomed:
            del self.transactions[txn_id]
        return len(doomed)

    def list_by_statement(self, statement_id: str) -> list[StoredTransaction]:
        return [t for t in self.transactions.values() if t.statement_id == statement_id]

    def list_by_statements(
        self,
        statement_ids: list[str],
        start_date: date | None = None,
        end_date: date | None = None
    ) -> list[StoredTransaction]:
        wanted = set(statement_ids)
        found = [t for t in self.transactions.values() if t.statement_id in wanted]
        if start_date and end_date:
            found = [t for t in found if start_date <= t.date <= end_date]
        return found

    def count_transactions(self, verified: bool | None = None) -> int:
        if verified is None:
            return len(self.transactions)
        return sum(1 for t in self.transactions.values() if t.verified == verified)

    def _get_transaction(self, transaction_id: str) -> StoredTransaction:
        if transaction_id not in self.transactions:
            raise KeyError(f"Transaction not found: {transaction_id}")
        return self.transactions[transaction_id]

    def verify_transaction(self, transaction_id: str, user_id: str | None) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.verify(user_id)
        return txn

    def unverify_transaction(self, transaction_id: str) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.unverify()
        return txn

    def reclassify_transaction(
        self,
        transaction_id: str,
        category: Category,
        order_subcategory: OrderSubcategory | None = None,
        notes: str = ""
    ) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.reclassify(category, order_subcategory, notes)
        return txn

    # AccountStore

    def get_account(self, account_id: str) -> AccountAggregate | None:
        account = self.accounts.get(account_id)
        if account is None or account.is_deleted:
            return None
        return account

    def list_accounts(self, holder_id: str | None = None) -> list[AccountAggregate]:
        return [
            a for a in self.accounts.values()
            if not a.is_deleted and (holder_id is None or a.holder_id == holder_id)
        ]

    def find_accounts(
        self,
        holder_id: str,
        account_name: str | None = None,
        last_four: str | None = None
    ) -> list[AccountAggregate]:
        return [
            a for a in self.list_accounts(holder_id)
            if (account_name is None or _names_match(a.account_name, account_name))
            and (last_four is None or a.last_four == last_four)
        ]

    def update_limits(
        self,
        account_id: str,
        card_limit: Decimal,
        available_limit: Decimal,
        outstanding_amount: Decimal
    ) -> None:
        account = self.accounts[account_id]
        account.card_limit = card_limit
        account.available_limit = available_limit
        account.outstanding_amount = outstanding_amount
        account.last_updated = datetime.now()
