"""
Account Summary Aggregation Module

Computes category totals, verification rates, credit utilization and monthly
trends for card accounts, and rolls them up across a portfolio.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from statement_parser.models import Category
from statement_processing.records import AccountAggregate, StatementRecord, StoredTransaction
from statement_processing.stores import AccountStore, StatementStore, TransactionStore

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


class AccountSummaryError(Exception):
    """Raised when an account summary cannot be computed."""


@dataclass
class CategoryTotal:
    """Count and amount of one category's transactions."""

    count: int = 0
    amount: Decimal = ZERO
    verified_count: int = 0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "amount": float(self.amount),
            "verified": self.verified_count,
        }


@dataclass
class TransactionStats:
    """Overall transaction counts and amounts."""

    total_transactions: int = 0
    total_amount: Decimal = ZERO
    average_amount: Decimal = ZERO
    verified_transactions: int = 0
    unverified_transactions: int = 0
    verified_amount: Decimal = ZERO
    unverified_amount: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "totalTransactions": self.total_transactions,
            "totalAmount": float(self.total_amount),
            "averageAmount": float(self.average_amount),
            "verifiedTransactions": self.verified_transactions,
            "unverifiedTransactions": self.unverified_transactions,
            "verifiedAmount": float(self.verified_amount),
            "unverifiedAmount": float(self.unverified_amount),
        }


@dataclass
class Financials:
    """Spending per category and credit utilization."""

    total_spent: Decimal = ZERO
    category_amounts: dict[Category, Decimal] = field(default_factory=dict)
    available_credit: Decimal = ZERO
    credit_utilization: float = 0.0

    def to_dict(self) -> dict:
        amounts = {
            "totalBills": Category.BILLS,
            "totalWithdrawals": Category.WITHDRAWALS,
            "totalOrders": Category.ORDERS,
            "totalFees": Category.FEES,
            "totalPersonalUse": Category.PERSONAL_USE,
            "totalUnclassified": Category.UNCLASSIFIED,
        }
        result = {"totalSpent": float(self.total_spent)}
        for key, category in amounts.items():
            result[key] = float(self.category_amounts.get(category, ZERO))
        result["availableCredit"] = float(self.available_credit)
        result["creditUtilization"] = self.credit_utilization
        return result


@dataclass
class VerificationStats:
    """How many transactions an operator has verified, overall and per category."""

    total_transactions: int = 0
    verified_transactions: int = 0
    unverified_transactions: int = 0
    verification_rate: float = 0.0
    by_category: dict[Category, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalTransactions": self.total_transactions,
            "verifiedTransactions": self.verified_transactions,
            "unverifiedTransactions": self.unverified_transactions,
            "verificationRate": self.verification_rate,
            "verifiedByCategory": {c.value: stats for c, stats in self.by_category.items()},
        }


@dataclass
class MonthlyTrend:
    """One statement month's activity and limit figures."""

    month: str
    year: int | None
    statements: int = 0
    transactions: int = 0
    total_amount: Decimal = ZERO
    card_limit: Decimal = ZERO
    available_limit: Decimal = ZERO
    outstanding_amount: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "statements": self.statements,
            "transactions": self.transactions,
            "totalAmount": float(self.total_amount),
            "cardLimit": float(self.card_limit),
            "availableLimit": float(self.available_limit),
            "outstandingAmount": float(self.outstanding_amount),
        }


@dataclass
class AccountSummary:
    """Computed summary of one card account. Never persisted."""

    account: AccountAggregate
    card_limit: Decimal
    available_limit: Decimal
    outstanding_amount: Decimal
    minimum_payment: Decimal = ZERO
    due_date: date | None = None
    category_totals: dict[Category, CategoryTotal] = field(default_factory=dict)
    transaction_stats: TransactionStats = field(default_factory=TransactionStats)
    financials: Financials = field(default_factory=Financials)
    verification_stats: VerificationStats = field(default_factory=VerificationStats)
    monthly_trends: list[MonthlyTrend] = field(default_factory=list)
    statement_count: int = 0

    @property
    def transaction_count(self) -> int:
        return self.transaction_stats.total_transactions

    def to_dict(self) -> dict:
        return {
            "account": self.account.to_dict(),
            "cardLimit": float(self.card_limit),
            "availableLimit": float(self.available_limit),
            "outstandingAmount": float(self.outstanding_amount),
            "minimumPayment": float(self.minimum_payment),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "categoryTotals": {c.value: t.to_dict() for c, t in self.category_totals.items()},
            "transactionStats": self.transaction_stats.to_dict(),
            "financials": self.financials.to_dict(),
            "verificationStats": self.verification_stats.to_dict(),
            "monthlyTrends": [t.to_dict() for t in self.monthly_trends],
            "statements": self.statement_count,
            "transactions": self.transaction_count,
        }


@dataclass
class PortfolioSummary:
    """Roll-up of every account's summary."""

    total_accounts: int = 0
    total_card_limit: Decimal = ZERO
    total_available_limit: Decimal = ZERO
    total_outstanding_amount: Decimal = ZERO
    total_transactions: int = 0
    total_amount: Decimal = ZERO
    total_verified: int = 0
    account_summaries: list[AccountSummary] = field(default_factory=list)
    failed_accounts: list[str] = field(default_factory=list)

    @property
    def average_card_limit(self) -> Decimal:
        return self.total_card_limit / self.total_accounts if self.total_accounts else ZERO

    @property
    def average_outstanding_amount(self) -> Decimal:
        return self.total_outstanding_amount / self.total_accounts if self.total_accounts else ZERO

    @property
    def overall_credit_utilization(self) -> float:
        return utilization(self.total_outstanding_amount, self.total_card_limit)

    @property
    def verification_rate(self) -> float:
        return rate(self.total_verified, self.total_transactions)

    def to_dict(self) -> dict:
        return {
            "totalAccounts": self.total_accounts,
            "totalCardLimit": float(self.total_card_limit),
            "totalAvailableLimit": float(self.total_available_limit),
            "totalOutstandingAmount": float(self.total_outstanding_amount),
            "totalTransactions": self.total_transactions,
            "totalAmount": float(self.total_amount),
            "totalVerified": self.total_verified,
            "averageCardLimit": float(self.average_card_limit),
            "averageOutstandingAmount": float(self.average_outstanding_amount),
            "overallCreditUtilization": self.overall_credit_utilization,
            "verificationRate": self.verification_rate,
            "accountSummaries": [s.to_dict() for s in self.account_summaries],
            "failedAccounts": self.failed_accounts,
        }


def rate(part: int, whole: int) -> float:
    """Percentage of ``part`` in ``whole``, 0 for an empty whole."""
    return part / whole * 100 if whole > 0 else 0.0


def utilization(outstanding: Decimal, limit: Decimal) -> float:
    """Outstanding balance as a percentage of the credit limit."""
    if limit <= 0:
        return 0.0
    return float(outstanding / limit * 100)


def month_index(month: str) -> int:
    """Zero-based month index for a full or three-letter month name, -1 if unknown."""
    name = (month or "").strip().lower()
    for i, full in enumerate(MONTH_NAMES):
        if name == full.lower() or name == full[:3].lower():
            return i
    return -1


def calculate_category_totals(transactions: list[StoredTransaction]) -> dict[Category, CategoryTotal]:
    totals = {category: CategoryTotal() for category in Category}
    for txn in transactions:
        bucket = totals[txn.category]
        bucket.count += 1
        bucket.amount += txn.amount
        if txn.verified:
            bucket.verified_count += 1
    return totals


def calculate_transaction_stats(transactions: list[StoredTransaction]) -> TransactionStats:
    stats = TransactionStats(total_transactions=len(transactions))
    for txn in transactions:
        stats.total_amount += txn.amount
        if txn.verified:
            stats.verified_transactions += 1
            stats.verified_amount += txn.amount
        else:
            stats.unverified_transactions += 1
            stats.unverified_amount += txn.amount

    if stats.total_transactions:
        stats.average_amount = stats.total_amount / stats.total_transactions
    return stats


def calculate_financials(
    category_totals: dict[Category, CategoryTotal],
    card_limit: Decimal,
    available_limit: Decimal,
    outstanding_amount: Decimal
) -> Financials:
    """Spending totals and utilization.

    ``total_spent`` is always the sum of the per-category amounts.
    """
    amounts = {category: total.amount for category, total in category_totals.items()}
    return Financials(
        total_spent=sum(amounts.values(), ZERO),
        category_amounts=amounts,
        available_credit=available_limit,
        credit_utilization=utilization(outstanding_amount, card_limit),
    )


def calculate_verification_stats(transactions: list[StoredTransaction]) -> VerificationStats:
    stats = VerificationStats(total_transactions=len(transactions))
    by_category = {category: {"total": 0, "verified": 0, "rate": 0.0} for category in Category}

    for txn in transactions:
        bucket = by_category[txn.category]
        bucket["total"] += 1
        if txn.verified:
            stats.verified_transactions += 1
            bucket["verified"] += 1
        else:
            stats.unverified_transactions += 1

    for bucket in by_category.values():
        bucket["rate"] = rate(bucket["verified"], bucket["total"])

    stats.verification_rate = rate(stats.verified_transactions, stats.total_transactions)
    stats.by_category = by_category
    return stats


def calculate_monthly_trends(
    statements: list[StatementRecord],
    transactions: list[StoredTransaction]
) -> list[MonthlyTrend]:
    """Bucket statements and their transactions by statement month, most recent first.

    Limit figures of a bucket come from the last statement seen for that month.
    Transactions of statements outside ``statements`` are ignored.
    """
    buckets: dict[tuple, MonthlyTrend] = {}
    statement_keys: dict[str, tuple] = {}

    for statement in statements:
        key = (statement.year, statement.month)
        trend = buckets.setdefault(key, MonthlyTrend(month=statement.month, year=statement.year))
        trend.statements += 1
        data = statement.extracted_data
        trend.card_limit = data.card_limit if data else ZERO
        trend.available_limit = data.available_limit if data else ZERO
        trend.outstanding_amount = data.outstanding_amount if data else ZERO
        statement_keys[statement.id] = key

    for txn in transactions:
        key = statement_keys.get(txn.statement_id)
        if key is None:
            continue
        buckets[key].transactions += 1
        buckets[key].total_amount += txn.amount

    return sorted(
        buckets.values(),
        key=lambda t: (t.year or 0, month_index(t.month)),
        reverse=True,
    )


def build_account_summary(
    account: AccountAggregate,
    statements: list[StatementRecord],
    transactions: list[StoredTransaction]
) -> AccountSummary:
    """Summarize one account from its statements (newest first) and transactions.

    Non-zero figures of the newest statement take precedence over the
    account's stored limit fields.
    """
    card_limit = account.card_limit
    available_limit = account.available_limit
    outstanding_amount = account.outstanding_amount
    minimum_payment = ZERO
    due_date = None

    latest = statements[0].extracted_data if statements else None
    if latest is not None:
        card_limit = latest.card_limit or card_limit
        available_limit = latest.available_limit or available_limit
        outstanding_amount = latest.outstanding_amount or outstanding_amount
        minimum_payment = latest.minimum_payment
        due_date = latest.due_date

    category_totals = calculate_category_totals(transactions)

    return AccountSummary(
        account=account,
        card_limit=card_limit,
        available_limit=available_limit,
        outstanding_amount=outstanding_amount,
        minimum_payment=minimum_payment,
        due_date=due_date,
        category_totals=category_totals,
        transaction_stats=calculate_transaction_stats(transactions),
        financials=calculate_financials(category_totals, card_limit, available_limit, outstanding_amount),
        verification_stats=calculate_verification_stats(transactions),
        monthly_trends=calculate_monthly_trends(statements, transactions),
        statement_count=len(statements),
    )


class AggregationEngine:
    """Computes account, holder and portfolio summaries from persisted data."""

    def __init__(
        self,
        statements: StatementStore,
        transactions: TransactionStore,
        accounts: AccountStore
    ):
        self.statements = statements
        self.transactions = transactions
        self.accounts = accounts

    def get_account_summary(
        self,
        account_id: str,
        start_date: date | None = None,
        end_date: date | None = None
    ) -> AccountSummary:
        """Summarize one account.

        Args:
            account_id: Card account id
            start_date: First transaction date to include (needs end_date)
            end_date: Last transaction date to include (needs start_date)

        Returns:
            AccountSummary

        Raises:
            AccountSummaryError: Unknown account id
        """
        account = self.accounts.get_account(account_id)
        if account is None:
            raise AccountSummaryError(f"Account not found: {account_id}")

        statements = self.statements.find_for_account(
            account.holder_id, account.account_name, account.last_four
        )

        # Transactions belong to statements; an account without statements has none
        transactions = []
        if statements:
            transactions = self.transactions.list_by_statements(
                [s.id for s in statements], start_date, end_date
            )

        logger.debug(
            f"Account {account_id}: {len(statements)} statements, {len(transactions)} transactions"
        )
        return build_account_summary(account, statements, transactions)

    def get_holder_summaries(
        self,
        holder_id: str,
        start_date: date | None = None,
        end_date: date | None = None
    ) -> list[AccountSummary]:
        """Summaries of every account of one holder; failing accounts are left out."""
        summaries = []
        for account in self.accounts.list_accounts(holder_id):
            try:
                summaries.append(self.get_account_summary(account.id, start_date, end_date))
            except Exception as e:
                logger.error(f"Error summarizing account {account.id}: {e}")
        return summaries

    def get_portfolio_summary(
        self,
        holder_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None
    ) -> PortfolioSummary:
        """Roll up every account, or every account of one holder.

        An account whose summary fails still contributes its stored
        outstanding amount to the portfolio total.
        """
        accounts = self.accounts.list_accounts(holder_id)
        portfolio = PortfolioSummary(total_accounts=len(accounts))

        for account in accounts:
            try:
                summary = self.get_account_summary(account.id, start_date, end_date)
            except Exception as e:
                logger.error(f"Error summarizing account {account.id}: {e}")
                portfolio.failed_accounts.append(account.id)
                portfolio.total_outstanding_amount += account.outstanding_amount
                continue

            portfolio.account_summaries.append(summary)
            portfolio.total_card_limit += summary.card_limit
            portfolio.total_available_limit += summary.available_limit
            portfolio.total_outstanding_amount += summary.outstanding_amount
            portfolio.total_transactions += summary.transaction_count
            portfolio.total_amount += summary.financials.total_spent
            portfolio.total_verified += summary.verification_stats.verified_transactions

        logger.info(
            f"Portfolio summary: {portfolio.total_accounts} accounts, "
            f"outstanding {portfolio.total_outstanding_amount}, "
            f"{len(portfolio.failed_accounts)} failed"
        )
        return portfolio
