"""
Statement Parser Exceptions

Document-level extraction failures and row-level normalization failures.
"""

from dataclasses import dataclass


@dataclass
class StrategyAttempt:
    """One extraction strategy that was tried and did not produce text."""

    strategy: str
    error: str
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "error": self.error,
            "duration_seconds": self.duration_seconds,
        }


class StatementError(Exception):
    """Base class for statement parsing errors."""


class ExtractionError(StatementError):
    """The document could not be converted to text."""


class InvalidFormat(ExtractionError):
    """Empty input or missing PDF signature."""


class ExtractionFailed(ExtractionError):
    """Every extraction strategy was tried and none produced text."""

    def __init__(self, message: str, attempts: list[StrategyAttempt] | None = None):
        super().__init__(message)
        self.attempts = attempts or []

    @property
    def attempted_strategies(self) -> list[str]:
        return [a.strategy for a in self.attempts]


class CorruptedDocument(ExtractionFailed):
    """Extraction failed because the cross-reference table is damaged."""

    GUIDANCE = (
        "The PDF cross-reference table appears to be damaged. Re-download the "
        "statement from the bank portal or re-save it with a PDF printer, "
        "then upload it again."
    )

    def __init__(
        self,
        message: str,
        attempts: list[StrategyAttempt] | None = None,
        guidance: str | None = None
    ):
        super().__init__(message, attempts)
        self.guidance = guidance or self.GUIDANCE

    def __str__(self) -> str:
        return f"{self.args[0]}. {self.guidance}"


class NormalizationError(StatementError, ValueError):
    """A matched field could not be converted to a typed value."""


class InvalidAmount(NormalizationError):
    """Amount text is not a positive number."""


class InvalidDate(NormalizationError):
    """Date text does not form a valid calendar date in any known layout."""
