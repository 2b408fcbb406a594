"""
Summary Field Extractor Module

Finds labeled account-summary fields (limits, outstanding, minimum due, due date)
anywhere in the statement text.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from .exceptions import NormalizationError
from .field_normalizer import FieldNormalizer
from .models import ExtractedSummary

logger = logging.getLogger(__name__)

VALUE = r'[:\s]*(?:\$|Rs\.?|₹|INR)?\s*(\d[\d,]*(?:\.\d{1,2})?)'
SLASH_DATE = r'(\d{1,2}/\d{1,2}/\d{2,4})'


@dataclass(frozen=True)
class SummaryPattern:
    """A label pattern for one summary field."""

    regex: re.Pattern
    exclude: re.Pattern | None = None

    def search(self, line: str) -> str | None:
        for match in self.regex.finditer(line):
            # Exclusions apply to the words since the previous figure on the line
            qualifier = re.split(r'\d', line[:match.start()])[-1]
            if self.exclude and self.exclude.search(qualifier):
                continue
            return match.group(1)
        return None


def _label(regex: str, exclude: str | None = None) -> SummaryPattern:
    return SummaryPattern(
        re.compile(regex, re.IGNORECASE),
        re.compile(exclude, re.IGNORECASE) if exclude else None
    )


class SummaryFieldExtractor:
    """Extracts statement summary metrics from labeled lines."""

    FIELD_PATTERNS: dict[str, list[SummaryPattern]] = {
        "card_limit": [
            _label(rf'total\s*credit\s*limit{VALUE}'),
            _label(rf'credit\s*limit{VALUE}', exclude=r'available|self[\s-]*set|cash'),
            _label(rf'card\s*limit{VALUE}', exclude=r'available'),
            _label(rf'credit\s*line{VALUE}', exclude=r'available'),
        ],
        "available_limit": [
            _label(rf'available\s*credit\s*limit{VALUE}'),
            _label(rf'available\s*credit{VALUE}'),
            _label(rf'available\s*(?:card\s*)?limit{VALUE}', exclude=r'cash'),
            _label(rf'available\s*balance{VALUE}'),
            _label(rf'credit\s*available{VALUE}'),
        ],
        "outstanding_amount": [
            _label(rf'total\s*amount\s*due{VALUE}'),
            _label(rf'total\s*outstanding(?:\s*(?:amount|balance))?{VALUE}'),
            _label(rf'outstanding\s*(?:balance|amount){VALUE}'),
            _label(rf'(?:new|current|closing)\s*balance{VALUE}'),
            _label(rf'total\s*dues{VALUE}'),
            _label(rf'balance\s*due{VALUE}'),
        ],
        "minimum_payment": [
            _label(rf'minimum\s*amount\s*due{VALUE}'),
            _label(rf'minimum\s*payment(?:\s*due)?{VALUE}'),
            _label(rf'min(?:imum)?\.?\s*(?:payment|due|amt){VALUE}'),
        ],
        "due_date": [
            _label(rf'due\s*date[:\s]*{SLASH_DATE}'),
            _label(rf'payment\s*due[:\s]*(?:by|on)?[:\s]*{SLASH_DATE}'),
            _label(r'due\s*date[:\s]*(\d{1,2}[-\s][A-Za-z]{3,9}[-\s,]+\d{4})'),
            _label(r'due\s*date[:\s]*(\d{4}-\d{2}-\d{2})'),
        ],
    }

    # Labels whose value can sit on the next line
    TOTAL_LIMIT_LABEL = re.compile(r'total\s*credit\s*limit', re.IGNORECASE)
    AVAILABLE_LIMIT_LABEL = re.compile(r'available\s*credit\s*limit', re.IGNORECASE)

    # Amounts in a run-on line such as "Rs.40,000.00Rs.40,000.00Rs.30,216.16"
    NESTED_AMOUNT = re.compile(r'(?:\$|Rs\.?|₹)?\s?(\d{1,3}(?:,\d{2,3})+\.\d{2}|\d+\.\d{2})')

    # Position of the available limit in a limit / self-set limit / available run
    AVAILABLE_AMOUNT_POSITION = 2

    MONTH_NAMES = {
        "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
        "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    }
    NAMED_MONTH_DATE = re.compile(r'^(\d{1,2})[-\s]([A-Za-z]{3,9})[-\s,]+(\d{4})$')

    def __init__(self, normalizer: FieldNormalizer | None = None):
        self.normalizer = normalizer or FieldNormalizer()

    def extract_summary(self, lines: list[str]) -> ExtractedSummary:
        """Scan all lines for summary fields.

        Args:
            lines: Extracted statement lines

        Returns:
            ExtractedSummary with unfound numbers left at zero
        """
        lines = [line.strip() for line in lines if line and line.strip()]
        summary = ExtractedSummary(currency=self.normalizer.detect_currency("\n".join(lines)))
        found: set[str] = set()

        for index, line in enumerate(lines):
            for field_name, patterns in self.FIELD_PATTERNS.items():
                if field_name in found:
                    continue
                for pattern in patterns:
                    value = pattern.search(line)
                    if value is None:
                        continue
                    if self._assign(summary, field_name, value):
                        found.add(field_name)
                        logger.debug(f"Summary field {field_name}={value} from line {index}")
                        break

            next_line = lines[index + 1] if index + 1 < len(lines) else None
            if next_line is not None:
                self._correlate_next_line(summary, found, line, next_line)

        # Derived fallback
        if "available_limit" not in found and {"card_limit", "outstanding_amount"} <= found:
            summary.available_limit = summary.card_limit - summary.outstanding_amount
            logger.debug(f"Derived available limit {summary.available_limit}")

        return summary

    def _correlate_next_line(
        self,
        summary: ExtractedSummary,
        found: set[str],
        line: str,
        next_line: str
    ) -> None:
        """Pick up limit values printed on the line after their label."""
        if "card_limit" not in found and self.TOTAL_LIMIT_LABEL.search(line):
            amounts = self.NESTED_AMOUNT.findall(next_line)
            if amounts and self._assign(summary, "card_limit", amounts[0]):
                found.add("card_limit")
                logger.debug(f"Card limit {amounts[0]} taken from the following line")

        if "available_limit" not in found and self.AVAILABLE_LIMIT_LABEL.search(line):
            amounts = self.NESTED_AMOUNT.findall(next_line)
            value = None
            if len(amounts) > self.AVAILABLE_AMOUNT_POSITION:
                value = amounts[self.AVAILABLE_AMOUNT_POSITION]
            elif len(amounts) == 1:
                value = amounts[0]
            if value and self._assign(summary, "available_limit", value):
                found.add("available_limit")
                logger.debug(f"Available limit {value} taken from the following line")

    def _assign(self, summary: ExtractedSummary, field_name: str, value: str) -> bool:
        try:
            if field_name == "due_date":
                summary.due_date = self.normalizer.normalize_date(self._convert_named_month(value))
            else:
                amount: Decimal = self.normalizer.normalize_amount(value, allow_zero=True)
                setattr(summary, field_name, amount)
            return True
        except NormalizationError as e:
            logger.debug(f"Ignoring {field_name} value {value!r}: {e}")
            return False

    def _convert_named_month(self, value: str) -> str:
        """Turn "05-Jun-2025" into ISO "2025-06-05"; other layouts pass through."""
        match = self.NAMED_MONTH_DATE.match(value.strip())
        if not match:
            return value

        day, month_name, year = match.groups()
        month = self.MONTH_NAMES.get(month_name[:3].lower())
        if month is None:
            return value
        return f"{year}-{month:02d}-{int(day):02d}"


def extract_summary(lines: list[str]) -> ExtractedSummary:
    """Convenience function to extract summary fields."""
    return SummaryFieldExtractor().extract_summary(lines)
