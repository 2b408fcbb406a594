"""
Statement Parser Module

Handles PDF text extraction, transaction row reconstruction and matching,
field normalization, summary extraction and keyword classification
for credit card statements.
"""

from .classifier import TransactionClassifier
from .exceptions import (
    StatementError,
    ExtractionError,
    InvalidFormat,
    ExtractionFailed,
    CorruptedDocument,
    NormalizationError,
    InvalidAmount,
    InvalidDate,
    StrategyAttempt,
)
from .field_normalizer import FieldNormalizer, normalize_amount, normalize_date, detect_currency
from .line_reconciler import LineReconciler
from .models import (
    Category,
    OrderSubcategory,
    Currency,
    CandidateLine,
    RawMatch,
    ExtractedTransaction,
    ExtractedSummary,
    ParseResult,
)
from .parser import StatementParser, parse_statement_text
from .summary_extractor import SummaryFieldExtractor
from .text_extractor import TextExtractor, ExtractionResult
from .transaction_matcher import TransactionMatcher, LinePattern, TRANSACTION_PATTERNS

__all__ = [
    # Extraction
    "TextExtractor",
    "ExtractionResult",
    # Reconciliation and matching
    "LineReconciler",
    "TransactionMatcher",
    "LinePattern",
    "TRANSACTION_PATTERNS",
    # Normalization
    "FieldNormalizer",
    "normalize_amount",
    "normalize_date",
    "detect_currency",
    # Summary and classification
    "SummaryFieldExtractor",
    "TransactionClassifier",
    # Pipeline
    "StatementParser",
    "parse_statement_text",
    # Models
    "Category",
    "OrderSubcategory",
    "Currency",
    "CandidateLine",
    "RawMatch",
    "ExtractedTransaction",
    "ExtractedSummary",
    "ParseResult",
    # Errors
    "StatementError",
    "ExtractionError",
    "InvalidFormat",
    "ExtractionFailed",
    "CorruptedDocument",
    "NormalizationError",
    "InvalidAmount",
    "InvalidDate",
    "StrategyAttempt",
]
