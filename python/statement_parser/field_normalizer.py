"""
Field Normalizer Module

Converts matched date and amount substrings into typed values.
"""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from .exceptions import InvalidAmount, InvalidDate
from .models import Currency

logger = logging.getLogger(__name__)


class FieldNormalizer:
    """Normalizes amounts, dates and currency for statement text."""

    # Trailing indicators printed after an amount
    AMOUNT_SUFFIXES = re.compile(r'(?:\s*(?:cr|dr|rs\.?|inr))+$', re.IGNORECASE)

    # Currency markers that may appear anywhere in an amount
    AMOUNT_MARKERS = re.compile(r'rs\.?|inr|usd|us\$|\$|₹', re.IGNORECASE)

    SLASH_DATE = re.compile(r'^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})$')
    ISO_DATE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')

    # Layout names in the order they are tried
    DAY_FIRST_LAYOUTS = ["dd/mm/yyyy", "mm/dd/yyyy", "yyyy-mm-dd"]
    MONTH_FIRST_LAYOUTS = ["mm/dd/yyyy", "dd/mm/yyyy", "yyyy-mm-dd"]

    INR_MARKER = re.compile(r'Rs\.|₹')
    USD_MARKER = re.compile(r'\$')

    def __init__(self, day_first: bool = True):
        """Initialize the normalizer.

        Args:
            day_first: Try day/month before month/day. Only set False when the
                statement's locale is known to print month first.
        """
        self.day_first = day_first
        self.layouts = self.DAY_FIRST_LAYOUTS if day_first else self.MONTH_FIRST_LAYOUTS

    def normalize_amount(self, text: str | None, allow_zero: bool = False) -> Decimal:
        """Parse an amount string to a positive Decimal.

        Args:
            text: Amount string (may include $, Rs., Cr, thousands separators)
            allow_zero: Accept 0 (summary fields such as minimum due)

        Returns:
            Parsed Decimal amount

        Raises:
            InvalidAmount: If the text is not numeric or not greater than zero
        """
        if text is None or not str(text).strip():
            raise InvalidAmount(f"Empty amount: {text!r}")

        cleaned = str(text).strip()
        cleaned = self.AMOUNT_SUFFIXES.sub('', cleaned)
        cleaned = self.AMOUNT_MARKERS.sub('', cleaned)

        # Thousands separators (comma or space); the decimal point stays
        cleaned = cleaned.replace(',', '').replace(' ', '')
        if cleaned.startswith('+'):
            cleaned = cleaned[1:]

        if not re.fullmatch(r'-?\d+(?:\.\d+)?|-?\.\d+', cleaned):
            raise InvalidAmount(f"Cannot parse amount: {text}")

        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise InvalidAmount(f"Cannot parse amount: {text}")

        if amount < 0 or (amount == 0 and not allow_zero):
            raise InvalidAmount(f"Amount must be positive: {text}")

        return amount

    def normalize_date(self, text: str | None) -> date:
        """Parse a date string, trying day-first then month-first layouts.

        Two-digit years are expanded by prefixing "20". The first layout that
        yields a real calendar date wins.

        Args:
            text: Date string

        Returns:
            Parsed date

        Raises:
            InvalidDate: If no layout produces a valid date
        """
        if text is None or not str(text).strip():
            raise InvalidDate(f"Empty date: {text!r}")

        value = str(text).strip()

        for layout in self.layouts:
            parsed = self._try_layout(value, layout)
            if parsed is not None:
                return parsed

        raise InvalidDate(f"Cannot parse date: {text}")

    def _try_layout(self, value: str, layout: str) -> date | None:
        if layout == "yyyy-mm-dd":
            match = self.ISO_DATE.match(value)
            if not match:
                return None
            year, month, day = match.groups()
        else:
            match = self.SLASH_DATE.match(value)
            if not match:
                return None
            if layout == "dd/mm/yyyy":
                day, month, year = match.groups()
            else:
                month, day, year = match.groups()
            if len(year) == 2:
                year = "20" + year

        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            return None

    def detect_currency(self, full_text: str) -> Currency:
        """Detect the statement currency from marker counts.

        Args:
            full_text: Complete statement text

        Returns:
            INR when Rs. markers strictly outnumber $ markers, otherwise USD
        """
        if not full_text:
            return Currency.USD

        inr_count = len(self.INR_MARKER.findall(full_text))
        usd_count = len(self.USD_MARKER.findall(full_text))

        logger.debug(f"Currency markers: Rs.={inr_count} $={usd_count}")

        if inr_count > 0 and inr_count > usd_count:
            return Currency.INR
        return Currency.USD


_default_normalizer = FieldNormalizer()


def normalize_amount(text: str | None) -> Decimal:
    """Convenience wrapper around FieldNormalizer.normalize_amount."""
    return _default_normalizer.normalize_amount(text)


def normalize_date(text: str | None) -> date:
    """Convenience wrapper around FieldNormalizer.normalize_date."""
    return _default_normalizer.normalize_date(text)


def detect_currency(full_text: str) -> Currency:
    """Convenience wrapper around FieldNormalizer.detect_currency."""
    return _default_normalizer.detect_currency(full_text)
