"""Tests for the in-memory store."""

from conftest import make_txn
from upi_expenses.core.models import CategoryRule, Direction


def test_insert_assigns_ids_and_returns_copies(store):
    txn = make_txn(10, "A")
    txn_id = store.insert_transaction(txn)

    assert txn.id is None
    fetched = store.get_transaction(txn_id)
    fetched.notes = "changed"
    assert store.get_transaction(txn_id).notes is None


def test_parsed_reference_is_unique(store):
    assert store.insert_transaction(make_txn(10, "A", reference_id="X1", is_parsed=True)) is not None
    assert store.insert_transaction(make_txn(10, "A", reference_id="X1", is_parsed=True)) is None
    assert store.insert_transactions([
        make_txn(10, "A", reference_id="X1", is_parsed=True),
        make_txn(20, "B", reference_id="X2", is_parsed=True),
    ]) == 1
    assert store.count_transactions() == 2


def test_reads_are_newest_first_and_range_is_inclusive(store):
    store.insert_transactions([make_txn(1, "a", when=100), make_txn(2, "b", when=300), make_txn(3, "c", when=200)])

    assert [t.recipient_name for t in store.list_transactions()] == ["b", "c", "a"]
    assert [t.recipient_name for t in store.transactions_between(100, 200)] == ["c", "a"]


def test_spending_by_category_counts_sent_only(store):
    store.insert_transactions([
        make_txn(10, "a", when=100, category="Food"),
        make_txn(15, "b", when=150, category="Food"),
        make_txn(99, "c", when=150, category="Food", direction=Direction.RECEIVED),
        make_txn(50, "d", when=999, category="Food"),
    ])

    assert store.spending_by_category(100, 500) == {"Food": 25.0}


def test_rules_keep_insertion_order(store):
    store.insert_rules([CategoryRule("b", "B"), CategoryRule("a", "A", is_custom=True)])

    assert [r.keyword for r in store.list_rules()] == ["b", "a"]
    assert store.list_categories() == ["A", "B"]
    assert store.delete_custom_rules() == 1
    assert store.delete_all_rules() == 1
    assert store.count_rules() == 0
