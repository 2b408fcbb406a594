"""
Pytest configuration and fixtures for card statement processing tests.
"""

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from statement_processing.records import AccountAggregate, StatementRecord, StatementStatus
from statement_processing.stores import InMemoryStore

PDF_BYTES = b"%PDF-1.4\n% test statement\n"

SAMPLE_STATEMENT_TEXT = """\
CARD STATEMENT
Statement Period: 01/05/2025 - 31/05/2025
Credit Limit: $5,000.00
Available Credit: $3,750.00
Total Amount Due: $1,250.00
Minimum Payment Due: $35.00
Payment Due Date: 25/06/2025
11/05/2025 AMAZON.COM PURCHASE $125.50
12/05/2025 ELECTRIC COMPANY $80.00
13/05/2025 ATM WITHDRAWAL $200.00
14/05/2025
DOMINOS RESTAURANT
$45.25
15/05/2025 LATE PAYMENT FEE $25.00
"""


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def sample_statement_text() -> str:
    """Statement text with a summary block and five transactions."""
    return SAMPLE_STATEMENT_TEXT


@pytest.fixture
def sample_statement_lines() -> list[str]:
    return SAMPLE_STATEMENT_TEXT.splitlines()


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES


@pytest.fixture
def store() -> InMemoryStore:
    """In-memory store with one holder, one card account and one uploaded statement."""
    store = InMemoryStore()
    store.add_account(AccountAggregate(
        id="acct-1",
        holder_id="holder-1",
        account_name="HDFC Bank",
        card_number="4111 1111 1111 1234",
        card_limit=Decimal("4000.00"),
        available_limit=Decimal("4000.00"),
        outstanding_amount=Decimal("0"),
    ))
    document_ref = store.add_document(PDF_BYTES, "doc-1")
    store.add_statement(StatementRecord(
        id="stmt-1",
        holder_id="holder-1",
        account_name="HDFC Bank",
        card_digits="1234",
        month="May",
        year=2025,
        document_ref=document_ref,
        file_name="may-2025.pdf",
        status=StatementStatus.UPLOADED,
        created_at=datetime(2025, 6, 1, 9, 0),
    ))
    return store
