"""
Transaction Matcher Module

Applies an ordered list of line-shape patterns to candidate lines and pulls out
date, description, amount and (optionally) balance substrings.
"""

import logging
import re
from dataclasses import dataclass

from .models import CandidateLine, RawMatch

logger = logging.getLogger(__name__)

DATE = r'(\d{1,2}/\d{1,2}/\d{2,4})'
AMOUNT = r'(\d[\d,]*\.\d{2})'
RUPEE = r'Rs\.?\s?'
ANY_CURRENCY = r'(?:\$|Rs\.?\s?|₹)?'
DIRECTION = r'(?:\s?(?:Cr|Dr|CR|DR))'


@dataclass(frozen=True)
class LinePattern:
    """A line shape and which capture group holds each field."""

    name: str
    regex: re.Pattern
    date_group: int
    description_group: int
    amount_group: int
    balance_group: int | None = None

    def apply(self, line: str) -> RawMatch | None:
        match = self.regex.match(line)
        if not match:
            return None

        description = match.group(self.description_group).strip(" -:|\t")
        if not description:
            return None

        return RawMatch(
            date_text=match.group(self.date_group),
            description_text=description,
            amount_text=match.group(self.amount_group),
            balance_text=match.group(self.balance_group) if self.balance_group else None,
            pattern=self.name,
            line=line,
        )


def _pattern(name: str, regex: str, date: int, description: int, amount: int, balance: int | None = None) -> LinePattern:
    return LinePattern(name, re.compile(regex), date, description, amount, balance)


# Most structured shapes first, most permissive last. The order is the tie-break.
TRANSACTION_PATTERNS: list[LinePattern] = [
    # 11/05/2025 - AMAZON.COM - 125.50 - 1,200.00
    _pattern("dash_with_balance",
             rf'^{DATE}\s*-\s*(.+?)\s*-\s*{ANY_CURRENCY}{AMOUNT}\s*-\s*{ANY_CURRENCY}{AMOUNT}$', 1, 2, 3, 4),
    # 11/05/2025 - AMAZON.COM - $125.50
    _pattern("dash_separated",
             rf'^{DATE}\s*-\s*(.+?)\s*-\s*{ANY_CURRENCY}{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    # 11/05/2025 : AMAZON.COM : 125.50
    _pattern("colon_separated",
             rf'^{DATE}\s*:\s*(.+?)\s*:\s*{ANY_CURRENCY}{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    # 11/05/2025 | AMAZON.COM | 125.50 | 1,200.00
    _pattern("pipe_separated",
             rf'^{DATE}\s*\|\s*(.+?)\s*\|\s*{ANY_CURRENCY}{AMOUNT}{DIRECTION}?(?:\s*\|\s*{ANY_CURRENCY}{AMOUNT})?\s*\|?$',
             1, 2, 3, 4),
    # Table columns separated by runs of spaces
    _pattern("table_dollar_with_balance",
             rf'^{DATE}\s{{2,}}(.+?)\s{{2,}}\${AMOUNT}\s{{2,}}\${AMOUNT}$', 1, 2, 3, 4),
    _pattern("table_dollar",
             rf'^{DATE}\s{{2,}}(.+?)\s{{2,}}\${AMOUNT}$', 1, 2, 3),
    _pattern("table_rupee",
             rf'^{DATE}\s{{2,}}(.+?)\s{{2,}}{RUPEE}{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    _pattern("table_with_balance",
             rf'^{DATE}\s{{2,}}(.+?)\s{{2,}}{AMOUNT}\s{{2,}}{AMOUNT}$', 1, 2, 3, 4),
    _pattern("table_plain",
             rf'^{DATE}\s{{2,}}(.+?)\s{{2,}}{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    # 11/05/2025 AMAZON Rs.1,178.82 Cr
    _pattern("rupee_prefix_direction",
             rf'^{DATE}\s+(.+?)\s+{RUPEE}{AMOUNT}{DIRECTION}$', 1, 2, 3),
    _pattern("rupee_prefix",
             rf'^{DATE}\s+(.+?)\s+{RUPEE}{AMOUNT}$', 1, 2, 3),
    # 11/05/2025 AMAZON 1,178.82 Rs
    _pattern("rupee_suffix",
             rf'^{DATE}\s+(.+?)\s+{AMOUNT}\s?Rs\.?$', 1, 2, 3),
    # 11/05/2025 PAYMENT RECEIVED 1,178.82Cr
    _pattern("direction_suffix",
             rf'^{DATE}\s+(.+?)\s+{ANY_CURRENCY}{AMOUNT}{DIRECTION}$', 1, 2, 3),
    # 11/05/2025 AMAZON $125.50 $1,200.00
    _pattern("dollar_with_balance",
             rf'^{DATE}\s+(.+?)\s+[+-]?\${AMOUNT}\s+[+-]?\${AMOUNT}$', 1, 2, 3, 4),
    _pattern("dollar",
             rf'^{DATE}\s+(.+?)\s+[+-]?\${AMOUNT}$', 1, 2, 3),
    # AMAZON.COM 11/05/2025 125.50
    _pattern("description_before_date",
             rf'^(.*?[A-Za-z].*?)\s+{DATE}\s+{ANY_CURRENCY}{AMOUNT}{DIRECTION}?$', 2, 1, 3),
    # 11/05/2025AMAZONRs.1,178.82
    _pattern("glued_rupee",
             rf'^{DATE}\s*([A-Za-z][^\n]*?)\s*{RUPEE}{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    # 11/05/2025AMAZON.COM125.50
    _pattern("glued_plain",
             rf'^{DATE}([A-Za-z][^\n]*?[A-Za-z*#)\]])\$?{AMOUNT}{DIRECTION}?$', 1, 2, 3),
    # 11/05/2025 AMAZON 125.50 1200.00
    _pattern("plain_with_balance",
             rf'^{DATE}\s+(.+?)\s+[+-]?{AMOUNT}\s+[+-]?{AMOUNT}$', 1, 2, 3, 4),
    # 11/05/2025 WIRE TRANSFER 12,500
    _pattern("comma_thousands",
             rf'^{DATE}\s+(.+?)\s+[+-]?\$?(\d{{1,3}}(?:,\d{{2,3}})+(?:\.\d{{1,2}})?)$', 1, 2, 3),
    # 11/05/2025 AMAZON 125.50; a bare integer needs a dollar sign
    _pattern("plain",
             rf'^{DATE}\s+(.+?)\s+[+-]?\$?((?<=\$)\d[\d,]*(?:\.\d{{1,2}})?|\d[\d,]*\.\d{{1,2}})$', 1, 2, 3),
    # Last resort: first two-decimal amount after some text, trailing noise ignored
    _pattern("flexible",
             rf'^{DATE}\s*(.*?[A-Za-z].*?)\s*[+-]?{ANY_CURRENCY}(\d[\d,]*\.\d{{2}})(?![\d.]).*$', 1, 2, 3),
]


class TransactionMatcher:
    """Matches candidate lines against ordered line-shape patterns."""

    MIN_LINE_LENGTH = 8

    # Header / summary labels that are not transaction rows
    NON_TRANSACTION_MARKERS = [
        "statement", "credit limit", "account summary", "available credit",
        "available limit", "total amount due", "minimum amount due",
        "minimum payment", "payment due date", "due date", "opening balance",
        "closing balance", "previous balance", "total dues", "page ",
        "card number", "customer care", "reward points", "cash limit",
        "billing period", "transaction details",
    ]

    # Merchant words that mark a real row even next to a header label
    MERCHANT_HINTS = [
        "amazon", "purchase", "pos ", "upi", "atm", "neft", "imps",
        "paypal", "flipkart", "swiggy", "zomato", "uber", "netflix",
    ]

    DATE_ANYWHERE = re.compile(r'\d{1,2}/\d{1,2}/\d{2,4}')
    LEADING_DATE = re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}')
    AMOUNT_SIGNAL = re.compile(r'\d[\d,]*\.\d{2}')

    def __init__(self, patterns: list[LinePattern] | None = None):
        """Initialize the matcher.

        Args:
            patterns: Ordered pattern list (defaults to TRANSACTION_PATTERNS)
        """
        self.patterns = patterns if patterns is not None else TRANSACTION_PATTERNS

    def match(self, lines: list[CandidateLine | str]) -> list[RawMatch]:
        """Match every candidate line that looks like a transaction.

        Args:
            lines: Candidate lines from the line reconciler

        Returns:
            Raw matches in input order; unrecognized lines are dropped
        """
        matches = []

        for candidate in lines:
            line = str(candidate).strip()
            if not self.is_candidate(line):
                continue

            raw = self.match_line(line)
            if raw:
                matches.append(raw)

        logger.debug(f"Matched {len(matches)} of {len(lines)} candidate lines")
        return matches

    def match_line(self, line: str) -> RawMatch | None:
        """Return the match of the first pattern that fits, or None."""
        for pattern in self.patterns:
            raw = pattern.apply(line)
            if raw:
                logger.debug(f"Pattern {pattern.name} matched: {line}")
                return raw
        return None

    def is_candidate(self, line: str) -> bool:
        """Filter out headers, short lines and lines with no date."""
        if len(line) < self.MIN_LINE_LENGTH:
            return False

        if not self.DATE_ANYWHERE.search(line):
            return False

        lowered = line.lower()
        if any(marker in lowered for marker in self.NON_TRANSACTION_MARKERS):
            return self._has_transaction_signal(line, lowered)

        return True

    def _has_transaction_signal(self, line: str, lowered: str) -> bool:
        if any(hint in lowered for hint in self.MERCHANT_HINTS):
            return True
        return bool(self.LEADING_DATE.match(line) and self.AMOUNT_SIGNAL.search(line))


def match_transactions(lines: list[CandidateLine | str]) -> list[RawMatch]:
    """Convenience function to match candidate lines."""
    return TransactionMatcher().match(lines)
