"""
Statement Parser Models

Typed values produced by the statement parsing pipeline.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class Category(Enum):
    """Transaction classification categories, in evaluation order."""
    BILLS = "bills"
    WITHDRAWALS = "withdrawals"
    ORDERS = "orders"
    FEES = "fees"
    PERSONAL_USE = "personal_use"
    UNCLASSIFIED = "unclassified"


class OrderSubcategory(Enum):
    """Operator sub-classification for orders."""
    CB_WON = "cb_won"
    REF = "ref"
    LOSS = "loss"
    RUNNING = "running"


class Currency(Enum):
    """Statement currencies."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    CAD = "CAD"


@dataclass(frozen=True)
class CandidateLine:
    """One extracted line, or 2-4 consecutive lines joined, thought to be one transaction."""

    text: str
    source_indexes: tuple[int, ...] = ()

    @property
    def is_merged(self) -> bool:
        return len(self.source_indexes) > 1

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class RawMatch:
    """Substrings pulled out of one candidate line by a line-shape pattern."""

    date_text: str
    description_text: str
    amount_text: str
    balance_text: str | None = None
    pattern: str = ""
    line: str = ""


@dataclass
class ExtractedTransaction:
    """A normalized transaction row. Amount is always a positive magnitude."""

    date: date
    description: str
    amount: Decimal
    balance: Decimal | None = None
    category: Category = Category.UNCLASSIFIED
    source_line: str = ""

    def is_valid(self) -> bool:
        """Check the row is fit to persist."""
        return (
            self.date is not None
            and bool(self.description)
            and len(self.description.strip()) >= 2
            and self.amount is not None
            and self.amount > 0
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "balance": float(self.balance) if self.balance is not None else None,
            "category": self.category.value,
        }


@dataclass
class ExtractedSummary:
    """Account-level statement metrics. Numbers default to zero when not found."""

    currency: Currency = Currency.USD
    card_limit: Decimal = Decimal("0")
    available_limit: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    minimum_payment: Decimal = Decimal("0")
    due_date: date | None = None
    total_transactions: int = 0
    total_amount: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "currency": self.currency.value,
            "cardLimit": float(self.card_limit),
            "availableLimit": float(self.available_limit),
            "outstandingAmount": float(self.outstanding_amount),
            "minimumPayment": float(self.minimum_payment),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "totalTransactions": self.total_transactions,
            "totalAmount": float(self.total_amount),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ExtractedSummary":
        """Rebuild a summary from its stored dictionary form."""
        if not data:
            return cls()

        due_date = data.get("dueDate")
        if isinstance(due_date, str):
            due_date = date.fromisoformat(due_date[:10])

        return cls(
            currency=Currency(data.get("currency") or "USD"),
            card_limit=Decimal(str(data.get("cardLimit") or 0)),
            available_limit=Decimal(str(data.get("availableLimit") or 0)),
            outstanding_amount=Decimal(str(data.get("outstandingAmount") or 0)),
            minimum_payment=Decimal(str(data.get("minimumPayment") or 0)),
            due_date=due_date,
            total_transactions=int(data.get("totalTransactions") or 0),
            total_amount=Decimal(str(data.get("totalAmount") or 0)),
        )


@dataclass
class ParseResult:
    """Result of parsing one statement's text."""

    transactions: list[ExtractedTransaction] = field(default_factory=list)
    summary: ExtractedSummary = field(default_factory=ExtractedSummary)
    candidate_count: int = 0
    match_count: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_amount(self) -> Decimal:
        return sum((t.amount for t in self.transactions), Decimal("0"))

    @property
    def skipped_count(self) -> int:
        return self.match_count - len(self.transactions)
