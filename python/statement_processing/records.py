"""
Statement Processing Records

Persisted shapes the processing pipeline reads and writes through its stores.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from statement_parser.models import Category, ExtractedSummary, OrderSubcategory


class StatementStatus(Enum):
    """Statement processing status."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    PENDING = "pending"


# Statuses picked up by a batch run; "processing" covers runs that never finished
PENDING_STATUSES = {StatementStatus.UPLOADED, StatementStatus.PROCESSING, StatementStatus.PENDING}


@dataclass
class StatementRecord:
    """An uploaded statement and its latest extraction result."""

    id: str
    holder_id: str
    account_name: str
    card_number: str = ""
    card_digits: str = ""
    month: str = ""
    year: int | None = None
    document_ref: str = ""
    file_name: str = ""
    media_type: str = "application/pdf"
    status: StatementStatus = StatementStatus.UPLOADED
    processing_error: str | None = None
    extracted_data: ExtractedSummary | None = None
    uploaded_by: str | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    is_deleted: bool = False

    @property
    def last_four(self) -> str | None:
        """Card digits, falling back to the tail of the card number."""
        if self.card_digits and len(self.card_digits) == 4:
            return self.card_digits
        digits = "".join(ch for ch in self.card_number if ch.isdigit())
        return digits[-4:] if len(digits) >= 4 else None

    @property
    def full_month(self) -> str:
        return f"{self.month} {self.year}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "holder_id": self.holder_id,
            "account_name": self.account_name,
            "card_digits": self.last_four,
            "month": self.month,
            "year": self.year,
            "full_month": self.full_month,
            "file_name": self.file_name,
            "status": self.status.value,
            "processing_error": self.processing_error,
            "extracted_data": self.extracted_data.to_dict() if self.extracted_data else None,
            "uploaded_by": self.uploaded_by,
            "processed_by": self.processed_by,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class StoredTransaction:
    """A persisted transaction row owned by a statement."""

    id: str
    statement_id: str
    holder_id: str
    date: date
    description: str
    amount: Decimal
    balance: Decimal | None = None
    category: Category = Category.UNCLASSIFIED
    order_subcategory: OrderSubcategory | None = None
    verified: bool = False
    verified_by: str | None = None
    verified_at: datetime | None = None
    notes: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def verify(self, user_id: str | None) -> None:
        self.verified = True
        self.verified_by = user_id
        self.verified_at = datetime.now()

    def unverify(self) -> None:
        self.verified = False
        self.verified_by = None
        self.verified_at = None

    def reclassify(
        self,
        category: Category,
        order_subcategory: OrderSubcategory | None = None,
        notes: str = ""
    ) -> None:
        """Operator override of the keyword category.

        Order sub-classification only applies to orders and is cleared otherwise.
        """
        self.category = category
        self.order_subcategory = order_subcategory if category == Category.ORDERS else None
        if notes:
            self.notes = notes

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "statement_id": self.statement_id,
            "holder_id": self.holder_id,
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "balance": float(self.balance) if self.balance is not None else None,
            "category": self.category.value,
            "order_subcategory": self.order_subcategory.value if self.order_subcategory else None,
            "verified": self.verified,
            "verified_by": self.verified_by,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "notes": self.notes,
        }


@dataclass
class AccountAggregate:
    """A cardholder's card account with its current limit figures."""

    id: str
    holder_id: str
    account_name: str
    card_number: str = ""
    card_type: str = "Credit"
    card_limit: Decimal = Decimal("0")
    available_limit: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    status: str = "active"
    last_updated: datetime = field(default_factory=datetime.now)
    is_deleted: bool = False

    @property
    def last_four(self) -> str | None:
        digits = "".join(ch for ch in self.card_number if ch.isdigit())
        return digits[-4:] if len(digits) >= 4 else None

    @property
    def masked_card_number(self) -> str:
        return f"****{self.last_four}" if self.last_four else self.card_number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "holder_id": self.holder_id,
            "account_name": self.account_name,
            "card_number": self.masked_card_number,
            "card_type": self.card_type,
            "card_limit": float(self.card_limit),
            "available_limit": float(self.available_limit),
            "outstanding_amount": float(self.outstanding_amount),
            "status": self.status,
            "last_updated": self.last_updated.isoformat(),
        }
