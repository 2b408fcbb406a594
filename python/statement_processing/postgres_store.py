"""
PostgreSQL Store Module

psycopg2 implementation of the store interfaces.

Tables and the columns used:
    statement_files(document_ref, content)
    statements(id, holder_id, account_name, card_number, card_digits, month, year,
               document_ref, file_name, media_type, status, processing_error,
               extracted_data jsonb, uploaded_by, processed_by, processed_at,
               created_at, is_deleted)
    statement_transactions(id, statement_id, holder_id, txn_date, description,
               amount, balance, category, order_subcategory, verified,
               verified_by, verified_at, notes, created_at)
    card_accounts(id, holder_id, account_name, card_number, card_type, card_limit,
               available_limit, outstanding_amount, status, last_updated, is_deleted)
"""

import logging
import os
import uuid
from datetime import date
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from statement_parser.models import Category, ExtractedSummary, ExtractedTransaction, OrderSubcategory

from .records import (
    PENDING_STATUSES,
    AccountAggregate,
    StatementRecord,
    StatementStatus,
    StoredTransaction,
)
from .stores import AccountStore, DocumentStore, StatementStore, TransactionStore

logger = logging.getLogger(__name__)

LAST_FOUR_SQL = r"RIGHT(regexp_replace(card_number, '\D', '', 'g'), 4)"


def connect_from_env() -> Any:
    """Open a connection from DATABASE_URL or the POSTGRES_* variables."""
    database_url = os.getenv(
        "DATABASE_URL",
        f"postgresql://{os.getenv('POSTGRES_USER', 'accounting')}:"
        f"{os.getenv('POSTGRES_PASSWORD', 'password')}@"
        f"{os.getenv('POSTGRES_HOST', 'localhost')}:"
        f"{os.getenv('POSTGRES_PORT', '5432')}/"
        f"{os.getenv('POSTGRES_DB', 'card_statements')}"
    )
    return psycopg2.connect(database_url)


def _statement_from_row(row: dict) -> StatementRecord:
    return StatementRecord(
        id=str(row["id"]),
        holder_id=str(row["holder_id"]),
        account_name=row["account_name"] or "",
        card_number=row["card_number"] or "",
        card_digits=row["card_digits"] or "",
        month=row["month"] or "",
        year=row["year"],
        document_ref=row["document_ref"] or "",
        file_name=row["file_name"] or "",
        media_type=row["media_type"] or "application/pdf",
        status=StatementStatus(row["status"]),
        processing_error=row["processing_error"],
        extracted_data=ExtractedSummary.from_dict(row["extracted_data"]) if row["extracted_data"] else None,
        uploaded_by=row["uploaded_by"],
        processed_by=row["processed_by"],
        processed_at=row["processed_at"],
        created_at=row["created_at"],
        is_deleted=row["is_deleted"],
    )


def _transaction_from_row(row: dict) -> StoredTransaction:
    return StoredTransaction(
        id=str(row["id"]),
        statement_id=str(row["statement_id"]),
        holder_id=str(row["holder_id"]),
        date=row["txn_date"],
        description=row["description"],
        amount=Decimal(str(row["amount"])),
        balance=Decimal(str(row["balance"])) if row["balance"] is not None else None,
        category=Category(row["category"]),
        order_subcategory=OrderSubcategory(row["order_subcategory"]) if row["order_subcategory"] else None,
        verified=row["verified"],
        verified_by=row["verified_by"],
        verified_at=row["verified_at"],
        notes=row["notes"] or "",
        created_at=row["created_at"],
    )


def _account_from_row(row: dict) -> AccountAggregate:
    return AccountAggregate(
        id=str(row["id"]),
        holder_id=str(row["holder_id"]),
        account_name=row["account_name"] or "",
        card_number=row["card_number"] or "",
        card_type=row["card_type"] or "Credit",
        card_limit=Decimal(str(row["card_limit"] or 0)),
        available_limit=Decimal(str(row["available_limit"] or 0)),
        outstanding_amount=Decimal(str(row["outstanding_amount"] or 0)),
        status=row["status"] or "active",
        last_updated=row["last_updated"],
        is_deleted=row["is_deleted"],
    )


class PostgresStore(DocumentStore, StatementStore, TransactionStore, AccountStore):
    """Store backed by a psycopg2 connection. Every write commits."""

    def __init__(self, db_connection: Any):
        """Initialize the store.

        Args:
            db_connection: PostgreSQL database connection
        """
        self.db = db_connection

    def _fetch_all(self, query: str, params: tuple = ()) -> list[dict]:
        with self.db.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def _fetch_one(self, query: str, params: tuple = ()) -> dict | None:
        with self.db.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def _write(self, query: str, params: tuple = ()) -> int:
        try:
            with self.db.cursor() as cur:
                cur.execute(query, params)
                rowcount = cur.rowcount
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return rowcount

    # DocumentStore

    def get_document(self, document_ref: str) -> bytes:
        row = self._fetch_one(
            "SELECT content FROM statement_files WHERE document_ref = %s",
            (document_ref,)
        )
        if row is None:
            raise KeyError(f"Document not found: {document_ref}")
        return bytes(row["content"])

    # StatementStore

    def get_statement(self, statement_id: str) -> StatementRecord | None:
        row = self._fetch_one(
            "SELECT * FROM statements WHERE id = %s AND is_deleted = FALSE",
            (statement_id,)
        )
        return _statement_from_row(row) if row else None

    def update_status(
        self,
        statement_id: str,
        status: StatementStatus,
        user_id: str | None = None,
        error: str | None = None
    ) -> None:
        if status == StatementStatus.PROCESSED:
            self._write("""
                UPDATE statements
                SET status = %s, processing_error = %s, processed_by = %s, processed_at = NOW()
                WHERE id = %s
            """, (status.value, error, user_id, statement_id))
        else:
            self._write(
                "UPDATE statements SET status = %s, processing_error = %s WHERE id = %s",
                (status.value, error, statement_id)
            )
        logger.debug(f"Statement {statement_id} status -> {status.value}")

    def save_extracted_data(self, statement_id: str, summary: ExtractedSummary) -> None:
        self._write(
            "UPDATE statements SET extracted_data = %s WHERE id = %s",
            (Json(summary.to_dict()), statement_id)
        )

    def find_pending(self) -> list[StatementRecord]:
        rows = self._fetch_all("""
            SELECT * FROM statements
            WHERE status = ANY(%s) AND is_deleted = FALSE
            ORDER BY created_at
        """, ([s.value for s in PENDING_STATUSES],))
        return [_statement_from_row(row) for row in rows]

    def find_for_account(
        self,
        holder_id: str,
        account_name: str,
        last_four: str | None = None
    ) -> list[StatementRecord]:
        query = """
            SELECT * FROM statements
            WHERE holder_id = %s
              AND LOWER(TRIM(account_name)) = LOWER(TRIM(%s))
              AND is_deleted = FALSE
        """
        params: tuple = (holder_id, account_name)
        if last_four:
            query += f" AND (card_digits = %s OR {LAST_FOUR_SQL} = %s)"
            params += (last_four, last_four)
        query += " ORDER BY created_at DESC"
        return [_statement_from_row(row) for row in self._fetch_all(query, params)]

    def count_by_status(self) -> dict[str, int]:
        rows = self._fetch_all("""
            SELECT status, COUNT(*) AS count FROM statements
            WHERE is_deleted = FALSE
            GROUP BY status
        """)
        counts = {status.value: 0 for status in StatementStatus}
        for row in rows:
            counts[row["status"]] = int(row["count"])
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
        self._write("""
            INSERT INTO statement_transactions (
                id, statement_id, holder_id, txn_date, description,
                amount, balance, category, verified, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, FALSE, %s)
        """, (
            stored.id, statement_id, holder_id, stored.date, stored.description,
            stored.amount, stored.balance, stored.category.value, stored.created_at
        ))
        return stored

    def delete_by_statement(self, statement_id: str) -> int:
        return self._write(
            "DELETE FROM statement_transactions WHERE statement_id = %s",
            (statement_id,)
        )

    def list_by_statement(self, statement_id: str) -> list[StoredTransaction]:
        rows = self._fetch_all(
            "SELECT * FROM statement_transactions WHERE statement_id = %s ORDER BY txn_date",
            (statement_id,)
        )
        return [_transaction_from_row(row) for row in rows]

    def list_by_statements(
        self,
        statement_ids: list[str],
        start_date: date | None = None,
        end_date: date | None = None
    ) -> list[StoredTransaction]:
        if not statement_ids:
            return []

        query = "SELECT * FROM statement_transactions WHERE statement_id = ANY(%s)"
        params: tuple = (list(statement_ids),)
        if start_date and end_date:
            query += " AND txn_date BETWEEN %s AND %s"
            params += (start_date, end_date)
        query += " ORDER BY txn_date"
        return [_transaction_from_row(row) for row in self._fetch_all(query, params)]

    def count_transactions(self, verified: bool | None = None) -> int:
        if verified is None:
            row = self._fetch_one("SELECT COUNT(*) AS count FROM statement_transactions")
        else:
            row = self._fetch_one(
                "SELECT COUNT(*) AS count FROM statement_transactions WHERE verified = %s",
                (verified,)
            )
        return int(row["count"])

    def _get_transaction(self, transaction_id: str) -> StoredTransaction:
        row = self._fetch_one(
            "SELECT * FROM statement_transactions WHERE id = %s",
            (transaction_id,)
        )
        if row is None:
            raise KeyError(f"Transaction not found: {transaction_id}")
        return _transaction_from_row(row)

    def _save_review(self, txn: StoredTransaction) -> StoredTransaction:
        self._write("""
            UPDATE statement_transactions
            SET category = %s, order_subcategory = %s, verified = %s,
                verified_by = %s, verified_at = %s, notes = %s
            WHERE id = %s
        """, (
            txn.category.value,
            txn.order_subcategory.value if txn.order_subcategory else None,
            txn.verified, txn.verified_by, txn.verified_at, txn.notes, txn.id
        ))
        return txn

    def verify_transaction(self, transaction_id: str, user_id: str | None) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.verify(user_id)
        return self._save_review(txn)

    def unverify_transaction(self, transaction_id: str) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.unverify()
        return self._save_review(txn)

    def reclassify_transaction(
        self,
        transaction_id: str,
        category: Category,
        order_subcategory: OrderSubcategory | None = None,
        notes: str = ""
    ) -> StoredTransaction:
        txn = self._get_transaction(transaction_id)
        txn.reclassify(category, order_subcategory, notes)
        return self._save_review(txn)

    # AccountStore

    def get_account(self, account_id: str) -> AccountAggregate | None:
        row = self._fetch_one(
            "SELECT * FROM card_accounts WHERE id = %s AND is_deleted = FALSE",
            (account_id,)
        )
        return _account_from_row(row) if row else None

    def list_accounts(self, holder_id: str | None = None) -> list[AccountAggregate]:
        if holder_id is None:
            rows = self._fetch_all("SELECT * FROM card_accounts WHERE is_deleted = FALSE ORDER BY account_name")
        else:
            rows = self._fetch_all(
                "SELECT * FROM card_accounts WHERE holder_id = %s AND is_deleted = FALSE ORDER BY account_name",
                (holder_id,)
            )
        return [_account_from_row(row) for row in rows]

    def find_accounts(
        self,
        holder_id: str,
        account_name: str | None = None,
        last_four: str | None = None
    ) -> list[AccountAggregate]:
        query = "SELECT * FROM card_accounts WHERE holder_id = %s AND is_deleted = FALSE"
        params: tuple = (holder_id,)
        if account_name is not None:
            query += " AND LOWER(TRIM(account_name)) = LOWER(TRIM(%s))"
            params += (account_name,)
        if last_four is not None:
            query += f" AND {LAST_FOUR_SQL} = %s"
            params += (last_four,)
        return [_account_from_row(row) for row in self._fetch_all(query, params)]

    def update_limits(
        self,
        account_id: str,
        card_limit: Decimal,
        available_limit: Decimal,
        outstanding_amount: Decimal
    ) -> None:
        self._write("""
            UPDATE card_accounts
            SET card_limit = %s, available_limit = %s, outstanding_amount = %s, last_updated = NOW()
            WHERE id = %s
        """, (card_limit, available_limit, outstanding_amount, account_id))
