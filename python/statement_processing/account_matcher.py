"""
Account Matcher Module

Correlates a statement with the card account it belongs to.
"""

import logging
from typing import Callable

from .exceptions import AccountNotFound
from .records import AccountAggregate, StatementRecord
from .stores import AccountStore

logger = logging.getLogger(__name__)

Lookup = Callable[[AccountStore, StatementRecord], list[AccountAggregate]]


def _by_name_and_digits(store: AccountStore, statement: StatementRecord) -> list[AccountAggregate]:
    if not statement.last_four:
        return []
    return store.find_accounts(statement.holder_id, statement.account_name, statement.last_four)


def _by_name(store: AccountStore, statement: StatementRecord) -> list[AccountAggregate]:
    if not statement.account_name:
        return []
    return store.find_accounts(statement.holder_id, account_name=statement.account_name)


def _by_digits(store: AccountStore, statement: StatementRecord) -> list[AccountAggregate]:
    if not statement.last_four:
        return []
    return store.find_accounts(statement.holder_id, last_four=statement.last_four)


class AccountMatcher:
    """Finds the owning account through lookups of decreasing specificity.

    Each lookup is tried in order; the first one that returns exactly one
    account wins. Ambiguous or empty results fall through to the next lookup.
    """

    DEFAULT_LOOKUPS: list[tuple[str, Lookup]] = [
        ("holder+name+last4", _by_name_and_digits),
        ("holder+name", _by_name),
        ("holder+last4", _by_digits),
    ]

    def __init__(self, accounts: AccountStore, lookups: list[tuple[str, Lookup]] | None = None):
        self.accounts = accounts
        self.lookups = list(lookups) if lookups is not None else list(self.DEFAULT_LOOKUPS)

    def find(self, statement: StatementRecord) -> AccountAggregate | None:
        """Return the statement's account, or None when no lookup is conclusive."""
        for name, lookup in self.lookups:
            candidates = lookup(self.accounts, statement)
            if len(candidates) == 1:
                logger.debug(f"Statement {statement.id} matched account {candidates[0].id} by {name}")
                return candidates[0]
            if len(candidates) > 1:
                logger.debug(f"Lookup {name} is ambiguous for statement {statement.id} ({len(candidates)} accounts)")

        logger.warning(
            f"No account found for statement {statement.id} "
            f"(holder={statement.holder_id}, name={statement.account_name!r}, last4={statement.last_four})"
        )
        return None

    def require(self, statement: StatementRecord) -> AccountAggregate:
        """Like ``find`` but raises AccountNotFound instead of returning None."""
        account = self.find(statement)
        if account is None:
            raise AccountNotFound(
                f"No account for holder {statement.holder_id} matching "
                f"{statement.account_name!r} / {statement.last_four}"
            )
        return account
