"""
Line Reconciler Module

Stitches transaction rows that PDF text extraction split across several lines
back into single candidate lines.
"""

import logging
import re

from .models import CandidateLine

logger = logging.getLogger(__name__)


class LineReconciler:
    """Merges broken date / description / amount fragments into candidate lines."""

    DATE_ANCHOR = re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}')
    DATE_ONLY = re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}$')
    AMOUNT = re.compile(
        r'(?:\$|Rs\.?\s?|₹)?\d[\d,]*\.\d{2}(?:\s?(?:Cr|Dr|Rs)\b)?|\$\d[\d,]*',
        re.IGNORECASE
    )
    DESCRIPTION = re.compile(r'[A-Za-z]{2,}')
    AMOUNT_NOISE = re.compile(r'\b(?:cr|dr|rs|inr|usd)\b|[\s$₹.,:+\-]', re.IGNORECASE)

    # Lines looked at past a date-anchored line with no amount
    MAX_LOOKAHEAD = 3

    def reconcile(self, lines: list[str]) -> list[CandidateLine]:
        """Reconcile raw extracted lines into candidate transaction lines.

        Args:
            lines: Extracted text lines in document order

        Returns:
            Candidate lines in input order; every input line is used once
        """
        cleaned = [line.strip() for line in lines if line and line.strip()]
        candidates: list[CandidateLine] = []
        merged = 0

        i = 0
        while i < len(cleaned):
            consumed = self._merge_at(cleaned, i)
            text = " ".join(cleaned[i:i + consumed])
            candidates.append(CandidateLine(text=text, source_indexes=tuple(range(i, i + consumed))))
            if consumed > 1:
                merged += 1
                logger.debug(f"Merged lines {i}-{i + consumed - 1}: {text}")
            i += consumed

        logger.debug(f"Reconciled {len(cleaned)} lines into {len(candidates)} candidates ({merged} merged)")
        return candidates

    def _merge_at(self, lines: list[str], i: int) -> int:
        """Return how many lines starting at ``i`` form one candidate."""
        line = lines[i]

        if not self.is_date_anchored(line):
            return 1

        # 1. Complete row
        if self.has_description(line) and self.has_amount(line):
            return 1

        next_line = lines[i + 1] if i + 1 < len(lines) else None

        # 2. Amount printed on the following line
        if next_line is not None and self.is_amount_line(next_line) and not self.is_date_anchored(next_line):
            return 2

        # 3. Bare date, then description, then amount
        if self.is_date_only(line) and i + 2 < len(lines):
            description, amount = lines[i + 1], lines[i + 2]
            if (
                not self.is_date_anchored(description)
                and not self.has_amount(description)
                and self.is_amount_line(amount)
            ):
                return 3

        # 4. Scan ahead for an amount, stopping at the next dated row
        if not self.has_amount(line):
            for offset in range(1, self.MAX_LOOKAHEAD + 1):
                j = i + offset
                if j >= len(lines) or self.is_date_anchored(lines[j]):
                    break
                if self.has_amount(lines[j]):
                    return offset + 1

        return 1

    def is_date_anchored(self, line: str) -> bool:
        return bool(self.DATE_ANCHOR.match(line))

    def is_date_only(self, line: str) -> bool:
        return bool(self.DATE_ONLY.match(line.strip()))

    def has_amount(self, line: str) -> bool:
        return bool(self.AMOUNT.search(self.DATE_ANCHOR.sub('', line)))

    def has_description(self, line: str) -> bool:
        return bool(self.DESCRIPTION.search(self.DATE_ANCHOR.sub('', line)))

    def is_amount_line(self, line: str) -> bool:
        """A line holding only amounts and currency noise."""
        if not self.AMOUNT.search(line):
            return False
        residual = self.AMOUNT_NOISE.sub('', self.AMOUNT.sub('', line))
        return residual == ""


def reconcile_lines(lines: list[str]) -> list[CandidateLine]:
    """Convenience function to reconcile extracted lines."""
    return LineReconciler().reconcile(lines)
