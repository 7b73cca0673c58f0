"""Tests for PostgresStore against a mocked psycopg2 connection."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from conftest import make_txn
from upi_expenses.core.errors import StoreError
from upi_expenses.core.models import Budget, BudgetPeriod, CategoryRule, Direction
from upi_expenses.store.postgres import PostgresStore


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def conn(cursor):
    connection = MagicMock()
    connection.cursor.return_value = cursor
    return connection


@pytest.fixture
def pg(conn):
    return PostgresStore(conn)


def test_insert_transaction_returns_new_id(pg, conn, cursor):
    cursor.fetchone.return_value = (7,)

    assert pg.insert_transaction(make_txn(10, "A", reference_id="R1", is_parsed=True)) == 7
    sql, params = cursor.execute.call_args[0]
    assert "ON CONFLICT" in sql
    assert params[2] == "SENT"
    assert params[8] == "R1"
    conn.commit.assert_called_once()
    cursor.close.assert_called_once()


def test_insert_transaction_conflict_returns_none(pg, cursor):
    cursor.fetchone.return_value = None
    assert pg.insert_transaction(make_txn(10, "A", reference_id="R1", is_parsed=True)) is None


def test_database_errors_roll_back_and_raise(pg, conn, cursor):
    cursor.execute.side_effect = psycopg2.OperationalError("connection lost")

    with pytest.raises(StoreError, match="connection lost"):
        pg.count_transactions()

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    cursor.close.assert_called_once()


def test_batch_insert_commits_once_and_counts_rows(pg, conn, cursor):
    cursor.fetchone.side_effect = [(1,), None, (3,)]

    inserted = pg.insert_transactions([make_txn(1, "a"), make_txn(2, "b"), make_txn(3, "c")])

    assert inserted == 2
    assert cursor.execute.call_count == 3
    conn.commit.assert_called_once()


def test_batch_insert_failure_rolls_back_everything(pg, conn, cursor):
    cursor.execute.side_effect = [None, psycopg2.IntegrityError("amount check")]
    cursor.fetchone.return_value = (1,)

    with pytest.raises(StoreError):
        pg.insert_transactions([make_txn(1, "a"), make_txn(2, "b")])

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()


def test_rows_are_mapped_to_transactions(pg, cursor):
    cursor.fetchall.return_value = [
        (5, Decimal("99.50"), "Zomato", "SENT", 1736930000000, "Food & Dining",
         None, "raw", "Paytm", "ORD1", True),
    ]

    [txn] = pg.list_transactions()

    assert txn.id == 5
    assert txn.amount == Decimal("99.50")
    assert txn.direction == Direction.SENT
    assert txn.source_app == "Paytm"
    assert txn.is_parsed is True
    assert "ORDER BY timestamp_ms DESC" in cursor.execute.call_args[0][0]


def test_spending_by_category(pg, cursor):
    cursor.fetchall.return_value = [("Food", Decimal("150.00")), ("Shopping", Decimal("20"))]

    assert pg.spending_by_category(0, 10) == {"Food": 150.0, "Shopping": 20.0}
    assert cursor.execute.call_args[0][1] == (0, 10)


def test_insert_rules_uses_executemany(pg, conn, cursor):
    count = pg.insert_rules([CategoryRule("amazon", "Shopping", "shopping_bag"), CategoryRule("uber", "Transport")])

    assert count == 2
    params = cursor.executemany.call_args[0][1]
    assert params[0] == ("amazon", "Shopping", "shopping_bag", False)
    conn.commit.assert_called_once()


def test_upsert_budget_inserts_when_update_finds_nothing(pg, cursor):
    cursor.fetchone.side_effect = [None, (11,)]
    budget = Budget("Food", Decimal("500"), BudgetPeriod.WEEKLY, id=3)

    assert pg.upsert_budget(budget) == 11
    update_sql = cursor.execute.call_args_list[0][0][0]
    insert_sql = cursor.execute.call_args_list[1][0][0]
    assert "UPDATE budgets" in update_sql
    assert "INSERT INTO budgets" in insert_sql


def test_deactivate_budget(pg, cursor):
    cursor.rowcount = 1
    assert pg.deactivate_budget(3) is True
    assert "is_active = FALSE" in cursor.execute.call_args[0][0]


def test_connect_wraps_connection_errors():
    with patch("upi_expenses.store.postgres.get_db_connection",
               side_effect=psycopg2.OperationalError("refused")):
        with pytest.raises(StoreError, match="refused"):
            PostgresStore.connect()
