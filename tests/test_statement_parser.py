"""
Statement Parser Module Tests

Tests for field normalization, line reconciliation, transaction matching,
summary extraction, classification and the parsing pipeline.
"""

import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_parser.classifier import TransactionClassifier
from statement_parser.exceptions import InvalidAmount, InvalidDate, NormalizationError
from statement_parser.field_normalizer import FieldNormalizer, detect_currency, normalize_amount, normalize_date
from statement_parser.line_reconciler import LineReconciler
from statement_parser.models import Category, Currency, ExtractedTransaction
from statement_parser.parser import StatementParser, parse_statement_text
from statement_parser.summary_extractor import SummaryFieldExtractor
from statement_parser.transaction_matcher import TRANSACTION_PATTERNS, TransactionMatcher


class TestFieldNormalizerAmounts:
    """Tests for amount normalization."""

    @pytest.mark.parametrize("text,expected", [
        ("$125.50", Decimal("125.50")),
        ("Rs.1,178.82", Decimal("1178.82")),
        ("1,178.82Cr", Decimal("1178.82")),
        ("125.50", Decimal("125.50")),
        ("Rs. 2,500.00 Dr", Decimal("2500.00")),
        ("₹99.00", Decimal("99.00")),
        ("+40.00", Decimal("40.00")),
    ])
    def test_supported_forms(self, text, expected):
        assert normalize_amount(text) == expected

    @pytest.mark.parametrize("text", ["-50.00", "0.00", "0", "abc", "", None, "12.5.3"])
    def test_rejected_forms(self, text):
        with pytest.raises(InvalidAmount):
            normalize_amount(text)

    def test_zero_allowed_for_summary_fields(self):
        normalizer = FieldNormalizer()
        assert normalizer.normalize_amount("$0.00", allow_zero=True) == Decimal("0.00")

    def test_invalid_amount_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_amount("not money")


class TestFieldNormalizerDates:
    """Tests for date normalization."""

    def test_day_first_is_deterministic(self):
        results = {normalize_date("05/11/2025") for _ in range(5)}
        assert results == {date(2025, 11, 5)}

    def test_day_over_twelve(self):
        assert normalize_date("13/05/2025") == date(2025, 5, 13)

    def test_falls_back_to_month_first(self):
        assert normalize_date("05/13/2025") == date(2025, 5, 13)

    def test_two_digit_year(self):
        assert normalize_date("11/05/25") == date(2025, 5, 11)

    def test_iso(self):
        assert normalize_date("2025-05-11") == date(2025, 5, 11)

    def test_other_separators(self):
        assert normalize_date("11-05-2025") == date(2025, 5, 11)
        assert normalize_date("11.05.2025") == date(2025, 5, 11)

    def test_month_first_locale(self):
        normalizer = FieldNormalizer(day_first=False)
        assert normalizer.normalize_date("05/11/2025") == date(2025, 5, 11)

    @pytest.mark.parametrize("text", ["31/02/2025", "45/45/2025", "yesterday", ""])
    def test_invalid(self, text):
        with pytest.raises(InvalidDate):
            normalize_date(text)


class TestCurrencyDetection:
    """Tests for currency detection by marker count."""

    def test_rupee_majority(self):
        assert detect_currency("Rs.100.00 Rs.200.00 $5.00") == Currency.INR

    def test_dollar_majority(self):
        assert detect_currency("Rs.100.00 $5.00 $6.00") == Currency.USD

    def test_tie_is_usd(self):
        assert detect_currency("Rs.100.00 $5.00") == Currency.USD

    def test_rupee_sign(self):
        assert detect_currency("₹100.00") == Currency.INR

    def test_empty_defaults_to_usd(self):
        assert detect_currency("") == Currency.USD


class TestLineReconciler:
    """Tests for merging split transaction rows."""

    @pytest.fixture
    def reconciler(self):
        return LineReconciler()

    def test_complete_row_unchanged(self, reconciler):
        candidates = reconciler.reconcile(["11/05/2025 AMAZON $125.50"])

        assert len(candidates) == 1
        assert candidates[0].text == "11/05/2025 AMAZON $125.50"
        assert not candidates[0].is_merged

    def test_amount_on_next_line(self, reconciler):
        candidates = reconciler.reconcile(["11/05/2025 AMAZON MARKETPLACE", "$125.50"])

        assert len(candidates) == 1
        assert candidates[0].text == "11/05/2025 AMAZON MARKETPLACE $125.50"
        assert candidates[0].source_indexes == (0, 1)

    def test_date_description_amount_triplet(self, reconciler):
        candidates = reconciler.reconcile(["11/05/2025", "AMAZON.COM PURCHASE", "$125.50"])

        assert len(candidates) == 1
        assert candidates[0].text == "11/05/2025 AMAZON.COM PURCHASE $125.50"
        assert candidates[0].source_indexes == (0, 1, 2)

    def test_lookahead_finds_amount(self, reconciler):
        candidates = reconciler.reconcile([
            "11/05/2025 STARBUCKS",
            "STORE 123 SEATTLE",
            "REF 8842 4.50",
        ])

        assert len(candidates) == 1
        assert candidates[0].source_indexes == (0, 1, 2)

    def test_lookahead_stops_at_next_dated_row(self, reconciler):
        candidates = reconciler.reconcile([
            "11/05/2025 UBER TRIP",
            "12/05/2025 LYFT RIDE $20.00",
        ])

        assert [c.text for c in candidates] == ["11/05/2025 UBER TRIP", "12/05/2025 LYFT RIDE $20.00"]

    def test_lookahead_is_bounded(self, reconciler):
        lines = ["11/05/2025 HOTEL", "A1", "B2", "C3", "D4 10.00"]
        candidates = reconciler.reconcile(lines)

        assert len(candidates) == 5
        assert candidates[0].text == "11/05/2025 HOTEL"

    def test_undated_lines_pass_through(self, reconciler):
        candidates = reconciler.reconcile(["Credit Limit: $5,000.00", "", "  "])

        assert [c.text for c in candidates] == ["Credit Limit: $5,000.00"]

    def test_every_line_used_once(self, reconciler, sample_statement_lines):
        candidates = reconciler.reconcile(sample_statement_lines)
        used = [i for c in candidates for i in c.source_indexes]
        non_empty = [line for line in sample_statement_lines if line.strip()]

        assert used == list(range(len(non_empty)))


class TestTransactionMatcher:
    """Tests for ordered pattern matching."""

    @pytest.fixture
    def matcher(self):
        return TransactionMatcher()

    def test_pattern_list_is_ordered_and_named(self):
        names = [p.name for p in TRANSACTION_PATTERNS]

        assert len(names) >= 20
        assert len(set(names)) == len(names)
        assert names[-1] == "flexible"

    def test_specific_pattern_wins(self, matcher):
        raw = matcher.match_line("11/05/2025 - AMAZON.COM - $125.50")

        assert raw.pattern == "dash_separated"
        assert raw.description_text == "AMAZON.COM"
        assert raw.amount_text == "125.50"
        assert raw.date_text == "11/05/2025"

    def test_dollar_row(self, matcher):
        raw = matcher.match_line("11/05/2025 AMAZON.COM PURCHASE $125.50")

        assert raw.pattern == "dollar"
        assert raw.description_text == "AMAZON.COM PURCHASE"

    def test_rupee_row_with_direction(self, matcher):
        raw = matcher.match_line("11/05/2025 SWIGGY Rs.1,178.82 Cr")

        assert raw.pattern == "rupee_prefix_direction"
        assert raw.amount_text == "1,178.82"

    def test_balance_column(self, matcher):
        raw = matcher.match_line("11/05/2025 AMAZON 125.50 1,200.00")

        assert raw.pattern == "plain_with_balance"
        assert raw.amount_text == "125.50"
        assert raw.balance_text == "1,200.00"

    def test_description_before_date(self, matcher):
        raw = matcher.match_line("AMAZON.COM 11/05/2025 125.50")

        assert raw.pattern == "description_before_date"
        assert raw.date_text == "11/05/2025"
        assert raw.description_text == "AMAZON.COM"

    def test_glued_row(self, matcher):
        raw = matcher.match_line("11/05/2025AMAZON.COM125.50")

        assert raw.pattern == "glued_plain"
        assert raw.description_text == "AMAZON.COM"
        assert raw.amount_text == "125.50"

    def test_bare_integer_is_not_an_amount(self, matcher):
        assert matcher.match_line("11/05/2025 ROOM 101") is None

    def test_plain_amounts(self, matcher):
        assert matcher.match_line("11/05/2025 PARKING GARAGE 12.5").amount_text == "12.5"
        assert matcher.match_line("11/05/2025 PARKING GARAGE $15").amount_text == "15"

    def test_unmatched_line(self, matcher):
        assert matcher.match_line("11/05/2025 nothing numeric here") is None

    @pytest.mark.parametrize("line", [
        "1/1/25",
        "Page 1 of 3",
        "Payment Due Date: 25/06/2025",
        "Statement Period: 01/05/2025 - 31/05/2025",
    ])
    def test_filtered_lines(self, matcher, line):
        assert not matcher.is_candidate(line)

    def test_marker_line_with_transaction_shape_kept(self, matcher):
        assert matcher.is_candidate("01/05/2025 ANNUAL STATEMENT FEE 25.00")

    def test_marker_line_with_merchant_hint_kept(self, matcher):
        assert matcher.is_candidate("Payment Due Date 01/05/2025 UPI REF 991")

    def test_match_drops_non_transactions(self, matcher):
        matches = matcher.match([
            "CARD STATEMENT",
            "Payment Due Date: 25/06/2025",
            "11/05/2025 AMAZON.COM PURCHASE $125.50",
            "12/05/2025 ELECTRIC COMPANY $80.00",
        ])

        assert [m.description_text for m in matches] == ["AMAZON.COM PURCHASE", "ELECTRIC COMPANY"]


class TestSummaryFieldExtractor:
    """Tests for labeled summary field extraction."""

    @pytest.fixture
    def extractor(self):
        return SummaryFieldExtractor()

    def test_labeled_fields(self, extractor, sample_statement_lines):
        summary = extractor.extract_summary(sample_statement_lines)

        assert summary.card_limit == Decimal("5000.00")
        assert summary.available_limit == Decimal("3750.00")
        assert summary.outstanding_amount == Decimal("1250.00")
        assert summary.minimum_payment == Decimal("35.00")
        assert summary.due_date == date(2025, 6, 25)
        assert summary.currency == Currency.USD

    def test_limits_on_following_line(self, extractor):
        summary = extractor.extract_summary([
            "TotalCreditLimit SelfSetCreditLimit AvailableCreditLimit",
            "Rs.40,000.00Rs.40,000.00Rs.30,216.16",
        ])

        assert summary.card_limit == Decimal("40000.00")
        assert summary.available_limit == Decimal("30216.16")
        assert summary.currency == Currency.INR

    def test_separate_limit_labels(self, extractor):
        summary = extractor.extract_summary([
            "TotalCreditLimit",
            "Rs.40,000.00",
            "AvailableCreditLimit",
            "Rs.30,216.16",
        ])

        assert summary.card_limit == Decimal("40000.00")
        assert summary.available_limit == Decimal("30216.16")

    def test_available_limit_derived(self, extractor):
        summary = extractor.extract_summary([
            "Credit Limit: $5,000.00",
            "Total Amount Due: $1,250.00",
        ])

        assert summary.available_limit == Decimal("3750.00")

    def test_no_derivation_without_outstanding(self, extractor):
        summary = extractor.extract_summary(["Credit Limit: $5,000.00"])

        assert summary.available_limit == Decimal("0")

    def test_limits_side_by_side(self, extractor):
        summary = extractor.extract_summary([
            "Credit Limit: $5,000.00   Available Credit: $3,750.00",
        ])

        assert summary.card_limit == Decimal("5000.00")
        assert summary.available_limit == Decimal("3750.00")

    def test_available_first_on_line(self, extractor):
        summary = extractor.extract_summary([
            "Available Credit Limit: $3,750.00   Credit Limit: $5,000.00",
        ])

        assert summary.card_limit == Decimal("5000.00")
        assert summary.available_limit == Decimal("3750.00")

    @pytest.mark.parametrize("line", [
        "Available Credit Limit: $3,750.00",
        "Self-Set Credit Limit: $4,000.00",
        "Cash Credit Limit: $1,000.00",
    ])
    def test_qualified_limit_is_not_card_limit(self, extractor, line):
        assert extractor.extract_summary([line]).card_limit == Decimal("0")

    def test_named_month_due_date(self, extractor):
        summary = extractor.extract_summary(["Payment Due Date: 05-Jun-2025"])

        assert summary.due_date == date(2025, 6, 5)

    def test_first_hit_wins(self, extractor):
        summary = extractor.extract_summary([
            "Credit Limit: $5,000.00",
            "Credit Limit: $9,000.00",
        ])

        assert summary.card_limit == Decimal("5000.00")

    def test_missing_fields_default(self, extractor):
        summary = extractor.extract_summary(["nothing useful here"])

        assert summary.card_limit == Decimal("0")
        assert summary.outstanding_amount == Decimal("0")
        assert summary.due_date is None


class TestTransactionClassifier:
    """Tests for keyword classification."""

    @pytest.fixture
    def classifier(self, config_dir):
        return TransactionClassifier(config_dir)

    @pytest.mark.parametrize("description,expected", [
        ("AMAZON.COM PURCHASE", Category.ORDERS),
        ("ELECTRIC COMPANY", Category.BILLS),
        ("ATM WITHDRAWAL", Category.WITHDRAWALS),
        ("LATE PAYMENT FEE", Category.FEES),
        ("DOMINOS RESTAURANT", Category.PERSONAL_USE),
        ("UBER TRIP", Category.UNCLASSIFIED),
    ])
    def test_categories(self, classifier, description, expected):
        assert classifier.classify(description) == expected

    def test_category_order_breaks_ties(self, classifier):
        assert classifier.classify("AMAZON ELECTRIC") == Category.BILLS

    def test_case_insensitive(self, classifier):
        assert classifier.classify("amazon prime") == Category.ORDERS

    def test_idempotent(self, classifier):
        txn = ExtractedTransaction(date=date(2025, 5, 11), description="ATM WITHDRAWAL", amount=Decimal("20"))
        first = classifier.classify(txn)
        classifier.classify_all([txn])

        assert classifier.classify(txn) == first == txn.category

    def test_category_counts(self, classifier):
        txns = [
            ExtractedTransaction(date=date(2025, 5, 11), description=d, amount=Decimal("1"))
            for d in ["AMAZON", "EBAY", "ATM CASH"]
        ]
        classifier.classify_all(txns)
        counts = classifier.category_counts(txns)

        assert counts["orders"] == 2
        assert counts["withdrawals"] == 1
        assert counts["unclassified"] == 0

    def test_keyword_override_from_config(self, tmp_path):
        (tmp_path / "classification_keywords.yaml").write_text(
            "categories:\n"
            "  orders: [zomato]\n"
            "  bogus: [anything]\n"
        )
        classifier = TransactionClassifier(tmp_path)

        assert classifier.classify("ZOMATO ORDER") == Category.ORDERS
        assert classifier.classify("AMAZON PURCHASE") == Category.UNCLASSIFIED
        assert classifier.classify("ATM WITHDRAWAL") == Category.WITHDRAWALS

    def test_missing_config_uses_defaults(self, tmp_path):
        classifier = TransactionClassifier(tmp_path)

        assert classifier.classify("AMAZON PURCHASE") == Category.ORDERS


class TestStatementParser:
    """Tests for the text to transactions pipeline."""

    @pytest.fixture
    def parser(self, config_dir):
        return StatementParser(config_dir)

    def test_split_row_scenario(self, parser):
        result = parser.parse_lines(["11/05/2025", "AMAZON.COM PURCHASE", "$125.50"])

        assert result.transaction_count == 1
        txn = result.transactions[0]
        assert txn.date == date(2025, 5, 11)
        assert txn.description == "AMAZON.COM PURCHASE"
        assert txn.amount == Decimal("125.50")
        assert txn.category == Category.ORDERS

    def test_full_statement(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert [t.category for t in result.transactions] == [
            Category.ORDERS,
            Category.BILLS,
            Category.WITHDRAWALS,
            Category.PERSONAL_USE,
            Category.FEES,
        ]
        assert result.summary.total_transactions == 5
        assert result.summary.total_amount == Decimal("475.75")
        assert result.summary.card_limit == Decimal("5000.00")
        assert result.warnings == []

    def test_bad_rows_skipped_and_not_counted(self, parser, sample_statement_text):
        text = sample_statement_text + (
            "31/02/2025 BAD DATE SHOP $10.00\n"
            "16/05/2025 REFUND ADJUSTMENT $0.00\n"
        )
        result = parser.parse_text(text)

        assert result.match_count == 7
        assert result.transaction_count == 5
        assert result.skipped_count == 2
        assert len(result.warnings) == 2
        assert result.summary.total_transactions == 5
        assert result.summary.total_amount == Decimal("475.75")

    def test_short_description_rejected(self, parser):
        from statement_parser.models import RawMatch

        raw = RawMatch(date_text="11/05/2025", description_text="X", amount_text="10.00")
        with pytest.raises(NormalizationError):
            parser.normalize_match(raw)

    def test_balance_kept(self, parser):
        result = parser.parse_lines(["11/05/2025 AMAZON 125.50 1,200.00"])

        assert result.transactions[0].balance == Decimal("1200.00")

    def test_convenience_function(self, config_dir, sample_statement_text):
        result = parse_statement_text(sample_statement_text, config_dir)

        assert result.transaction_count == 5
