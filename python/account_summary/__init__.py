"""
Account Summary Module

Aggregates persisted statement transactions into per-account, per-holder and
portfolio summaries.
"""

from .aggregation import (
    AggregationEngine,
    AccountSummaryError,
    AccountSummary,
    PortfolioSummary,
    CategoryTotal,
    TransactionStats,
    Financials,
    VerificationStats,
    MonthlyTrend,
    build_account_summary,
    calculate_category_totals,
    calculate_transaction_stats,
    calculate_financials,
    calculate_verification_stats,
    calculate_monthly_trends,
    month_index,
)

__all__ = [
    # Engine
    "AggregationEngine",
    "AccountSummaryError",
    # Results
    "AccountSummary",
    "PortfolioSummary",
    "CategoryTotal",
    "TransactionStats",
    "Financials",
    "VerificationStats",
    "MonthlyTrend",
    # Calculations
    "build_account_summary",
    "calculate_category_totals",
    "calculate_transaction_stats",
    "calculate_financials",
    "calculate_verification_stats",
    "calculate_monthly_trends",
    "month_index",
]
