"""
Transaction Classifier Module

Assigns transactions to a fixed category set by keyword containment on the
description. Rules are evaluated in category order and the first hit wins.
"""

import logging
from pathlib import Path

import yaml

from .models import Category, ExtractedTransaction

logger = logging.getLogger(__name__)


class TransactionClassifier:
    """Keyword-based transaction classifier."""

    # Evaluation order; UNCLASSIFIED is the fallback and has no keywords
    CATEGORY_ORDER = [
        Category.BILLS,
        Category.WITHDRAWALS,
        Category.ORDERS,
        Category.FEES,
        Category.PERSONAL_USE,
    ]

    DEFAULT_KEYWORDS: dict[Category, list[str]] = {
        Category.BILLS: [
            "electric", "water", "gas", "internet", "phone", "cable",
            "insurance", "rent", "mortgage", "utilities",
        ],
        Category.WITHDRAWALS: [
            "atm", "withdrawal", "cash advance", "cash back",
        ],
        Category.ORDERS: [
            "amazon", "ebay", "shopify", "paypal", "online", "web",
        ],
        Category.FEES: [
            "fee", "charge", "interest", "late", "overdraft", "penalty",
        ],
        Category.PERSONAL_USE: [
            "restaurant", "grocery", "gas station", "movie", "entertainment",
            "dining", "coffee", "fast food",
        ],
    }

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the classifier.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.keywords = {category: list(words) for category, words in self.DEFAULT_KEYWORDS.items()}
        self._load_config()

    def _load_config(self) -> None:
        """Load keyword overrides from classification_keywords.yaml."""
        config_file = self.config_dir / "classification_keywords.yaml"
        if not config_file.exists():
            logger.debug(f"Classification keywords file not found: {config_file}")
            return

        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        for name, words in (config.get("categories") or {}).items():
            try:
                category = Category(name)
            except ValueError:
                logger.warning(f"Ignoring unknown category in keyword config: {name}")
                continue

            if category == Category.UNCLASSIFIED:
                continue

            self.keywords[category] = [str(w).lower() for w in (words or [])]

        logger.info(f"Loaded classification keywords for {len(self.keywords)} categories")

    def classify(self, transaction: ExtractedTransaction | str) -> Category:
        """Classify a transaction or a bare description.

        Args:
            transaction: Transaction (or its description)

        Returns:
            First matching category in evaluation order, else UNCLASSIFIED
        """
        description = transaction if isinstance(transaction, str) else transaction.description
        lowered = (description or "").lower()

        for category in self.CATEGORY_ORDER:
            if any(keyword in lowered for keyword in self.keywords.get(category, [])):
                return category

        return Category.UNCLASSIFIED

    def classify_all(self, transactions: list[ExtractedTransaction]) -> list[ExtractedTransaction]:
        """Set the category on every transaction.

        Args:
            transactions: Transactions to classify in place

        Returns:
            The same list, for chaining
        """
        for txn in transactions:
            txn.category = self.classify(txn)
        return transactions

    def category_counts(self, transactions: list[ExtractedTransaction]) -> dict[str, int]:
        """Count transactions per category (all categories present)."""
        counts = {category.value: 0 for category in Category}
        for txn in transactions:
            counts[txn.category.value] += 1
        return counts
