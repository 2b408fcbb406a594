"""
Statement Parser Module

Runs extracted statement text through reconciliation, matching, normalization,
classification and summary extraction.
"""

import logging
from pathlib import Path

from .classifier import TransactionClassifier
from .exceptions import NormalizationError
from .field_normalizer import FieldNormalizer
from .line_reconciler import LineReconciler
from .models import ExtractedTransaction, ParseResult, RawMatch
from .summary_extractor import SummaryFieldExtractor
from .transaction_matcher import TransactionMatcher

logger = logging.getLogger(__name__)


class StatementParser:
    """Turns statement text into typed transactions and a summary."""

    MIN_DESCRIPTION_LENGTH = 2

    def __init__(
        self,
        config_dir: Path | str | None = None,
        normalizer: FieldNormalizer | None = None,
        classifier: TransactionClassifier | None = None
    ):
        """Initialize the parser.

        Args:
            config_dir: Path to configuration directory
            normalizer: Field normalizer (day-first by default)
            classifier: Transaction classifier (loads keywords from config_dir)
        """
        self.normalizer = normalizer or FieldNormalizer()
        self.reconciler = LineReconciler()
        self.matcher = TransactionMatcher()
        self.summary_extractor = SummaryFieldExtractor(self.normalizer)
        self.classifier = classifier or TransactionClassifier(config_dir)

    def parse_text(self, text: str) -> ParseResult:
        """Parse full statement text."""
        return self.parse_lines(text.splitlines())

    def parse_lines(self, lines: list[str]) -> ParseResult:
        """Parse extracted statement lines.

        Row-level failures (bad date, bad amount, short description) skip that
        row only and are reported in ``warnings``.

        Args:
            lines: Extracted text lines

        Returns:
            ParseResult whose summary totals count only the kept rows
        """
        lines = [line.strip() for line in lines if line and line.strip()]
        result = ParseResult()

        candidates = self.reconciler.reconcile(lines)
        matches = self.matcher.match(candidates)
        result.candidate_count = len(candidates)
        result.match_count = len(matches)

        for raw in matches:
            try:
                txn = self.normalize_match(raw)
            except NormalizationError as e:
                logger.warning(f"Skipping row {raw.line!r}: {e}")
                result.warnings.append(f"Skipped row {raw.line!r}: {e}")
                continue
            result.transactions.append(txn)

        self.classifier.classify_all(result.transactions)

        result.summary = self.summary_extractor.extract_summary(lines)
        result.summary.total_transactions = result.transaction_count
        result.summary.total_amount = result.total_amount

        logger.info(
            f"Parsed {result.transaction_count} transactions from {len(lines)} lines "
            f"({result.match_count} matched, {result.skipped_count} skipped)"
        )
        return result

    def normalize_match(self, raw: RawMatch) -> ExtractedTransaction:
        """Convert a raw match into a typed transaction.

        Raises:
            InvalidDate, InvalidAmount: If a field cannot be normalized
        """
        description = " ".join(raw.description_text.split())
        if len(description) < self.MIN_DESCRIPTION_LENGTH:
            raise NormalizationError(f"Description too short: {description!r}")

        balance = None
        if raw.balance_text:
            try:
                balance = self.normalizer.normalize_amount(raw.balance_text, allow_zero=True)
            except NormalizationError:
                logger.debug(f"Ignoring unparseable balance {raw.balance_text!r}")

        return ExtractedTransaction(
            date=self.normalizer.normalize_date(raw.date_text),
            description=description,
            amount=self.normalizer.normalize_amount(raw.amount_text),
            balance=balance,
            source_line=raw.line,
        )


def parse_statement_text(text: str, config_dir: Path | str | None = None) -> ParseResult:
    """Convenience function to parse statement text."""
    return StatementParser(config_dir=config_dir).parse_text(text)
