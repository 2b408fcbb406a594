"""
Statement Processing Module

Runs uploaded credit card statements through the parser, persists
transactions and summaries, and keeps card account limits current.
"""

from .account_matcher import AccountMatcher
from .exceptions import ProcessingError, StatementNotFound, StatementBusy, AccountNotFound
from .orchestrator import StatementOrchestrator, ProcessingResult, BatchProcessingResult
from .postgres_store import PostgresStore, connect_from_env
from .records import (
    StatementStatus,
    PENDING_STATUSES,
    StatementRecord,
    StoredTransaction,
    AccountAggregate,
)
from .stores import (
    DocumentStore,
    StatementStore,
    TransactionStore,
    AccountStore,
    NotificationSink,
    LoggingNotificationSink,
    InMemoryStore,
)

__all__ = [
    # Orchestration
    "StatementOrchestrator",
    "ProcessingResult",
    "BatchProcessingResult",
    "AccountMatcher",
    # Records
    "StatementStatus",
    "PENDING_STATUSES",
    "StatementRecord",
    "StoredTransaction",
    "AccountAggregate",
    # Stores
    "DocumentStore",
    "StatementStore",
    "TransactionStore",
    "AccountStore",
    "NotificationSink",
    "LoggingNotificationSink",
    "InMemoryStore",
    "PostgresStore",
    "connect_from_env",
    # Errors
    "ProcessingError",
    "StatementNotFound",
    "StatementBusy",
    "AccountNotFound",
]
