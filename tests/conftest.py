"""Shared fixtures for the expense tracker tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from upi_expenses.container import AppContainer
from upi_expenses.core.aggregation import to_ms
from upi_expenses.core.errors import StoreError
from upi_expenses.core.models import Direction, Transaction
from upi_expenses.store.memory import MemoryStore
from upi_expenses.utils.config import Settings

# Saturday, mid-month
NOW = datetime(2025, 3, 15, 12, 0, 0)


def ms(*args) -> int:
    """Epoch millis for a local datetime given as datetime(...) args."""
    return to_ms(datetime(*args))


def make_txn(amount, recipient="Someone", when=None, direction=Direction.SENT,
             category="Other", reference_id=None, is_parsed=False, notes=None):
    return Transaction(
        amount=Decimal(str(amount)),
        recipient_name=recipient,
        direction=direction,
        timestamp=when if when is not None else to_ms(NOW),
        category=category,
        notes=notes,
        reference_id=reference_id,
        is_parsed=is_parsed,
    )


class FailingStore(MemoryStore):
    """MemoryStore whose writes and reference lookups fail."""

    def find_by_reference_id(self, reference_id):
        raise StoreError("database is down")

    def insert_transaction(self, txn):
        raise StoreError("database is down")

    def insert_transactions(self, txns):
        raise StoreError("database is down")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def app(store, clock):
    """Container over a seeded MemoryStore with a fixed clock."""
    return AppContainer(store, Settings(progress_every=10), clock=clock)
