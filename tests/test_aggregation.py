"""Tests for statistics, budget usage and trends."""

from datetime import datetime
from decimal import Decimal

import pytest

from conftest import FailingStore, NOW, make_txn, ms
from upi_expenses.core.aggregation import MAX_BUDGET_USAGE, AggregationEngine, start_of_week
from upi_expenses.core.errors import StoreError
from upi_expenses.core.models import Budget, BudgetPeriod, DateRange, Direction
from upi_expenses.store.memory import MemoryStore


@pytest.fixture
def engine(store, clock):
    return AggregationEngine(store, clock=clock)


def add(store, *txns):
    store.insert_transactions(txns)


# ---- statistics -------------------------------------------------------

def test_empty_store_statistics(engine):
    stats = engine.statistics()

    assert stats.total_sent == 0
    assert stats.total_received == 0
    assert stats.net_balance == 0
    assert stats.category_summaries == []
    assert stats.monthly_summaries == []
    assert stats.recent_transactions == []
    assert stats.insights.top_merchant is None
    assert stats.budget_alerts == []


def test_totals_and_net_balance(engine, store):
    add(store,
        make_txn(100, "A"),
        make_txn("250.50", "B"),
        make_txn(1000, "Employer", direction=Direction.RECEIVED))

    stats = engine.statistics()

    assert stats.total_sent == pytest.approx(350.50)
    assert stats.total_received == pytest.approx(1000)
    assert stats.net_balance == pytest.approx(649.50)


def test_category_summaries_sorted_by_total(engine, store):
    add(store,
        make_txn(100, "Zomato", category="Food & Dining"),
        make_txn(50, "Swiggy", category="Food & Dining"),
        make_txn(500, "Amazon", category="Shopping"),
        make_txn(20, "Friend", category="Food & Dining", direction=Direction.RECEIVED))

    summaries = engine.statistics().category_summaries

    assert [s.category for s in summaries] == ["Shopping", "Food & Dining"]
    food = summaries[1]
    assert food.total_amount == pytest.approx(170)
    assert food.transaction_count == 3
    assert food.sent_amount == pytest.approx(150)
    assert food.received_amount == pytest.approx(20)
    assert food.icon == "restaurant"


def test_monthly_summaries_keep_six_most_recent(engine, store):
    months = [(2024, m) for m in range(8, 13)] + [(2025, 1), (2025, 2), (2025, 3)]
    for year, month in months:
        add(store, make_txn(month * 10, "Shop", when=ms(year, month, 10, 12, 0)))

    monthly = engine.statistics().monthly_summaries

    assert len(monthly) == 6
    assert [m.month for m in monthly] == ["Oct 2024", "Nov 2024", "Dec 2024", "Jan 2025", "Feb 2025", "Mar 2025"]
    assert monthly[0].sent_amount == pytest.approx(100)


def test_statistics_over_supplied_subset(engine, store):
    add(store, make_txn(100, "A"), make_txn(900, "B"))
    subset = [t for t in store.list_transactions() if t.recipient_name == "A"]

    assert engine.statistics(subset).total_sent == pytest.approx(100)


def test_recent_transactions_are_newest_fifty(engine, store):
    add(store, *[make_txn(i + 1, f"R{i}", when=ms(2025, 1, 1) + i * 1000) for i in range(60)])

    recent = engine.statistics().recent_transactions

    assert len(recent) == 50
    assert recent[0].recipient_name == "R59"
    assert recent[-1].recipient_name == "R10"


def test_current_month_insights(engine, store):
    add(store,
        make_txn(300, "Amazon", when=ms(2025, 3, 2), category="Shopping"),
        make_txn(100, "Zomato", when=ms(2025, 3, 3), category="Food & Dining"),
        make_txn(80, "Zomato", when=ms(2025, 3, 4), category="Food & Dining"),
        make_txn(70, "Swiggy", when=ms(2025, 3, 5), category="Food & Dining"),
        make_txn(9999, "Old", when=ms(2025, 2, 20), category="Shopping"),
        make_txn(5000, "Salary", when=ms(2025, 3, 1), direction=Direction.RECEIVED))

    insights = engine.statistics().insights

    assert insights.top_merchant.name == "Amazon"
    assert insights.top_merchant.amount == pytest.approx(300)
    assert insights.frequent_category.name == "Food & Dining"
    assert insights.frequent_category.transaction_count == 3
    assert insights.total_spent_this_month == pytest.approx(550)
    assert insights.transactions_this_month == 4
    assert insights.avg_daily_spend == pytest.approx(550 / 15)


# ---- budgets ----------------------------------------------------------

def budget(category, limit, period=BudgetPeriod.MONTHLY, threshold=0.8):
    return Budget(category=category, limit_amount=Decimal(str(limit)), period=period, alert_threshold=threshold)


def test_over_budget(engine, store):
    store.upsert_budget(budget("Shopping", 1000))
    add(store, make_txn(1200, "Amazon", category="Shopping", when=ms(2025, 3, 5)))

    [usage] = engine.budgets_with_spending()

    assert usage.is_over_budget is True
    assert usage.percentage_used == pytest.approx(1.2)
    assert usage.remaining_amount == 0
    assert usage.current_spending == pytest.approx(1200)


def test_usage_is_clamped(engine, store):
    store.upsert_budget(budget("Shopping", 100))
    add(store, make_txn(5000, "Amazon", category="Shopping", when=ms(2025, 3, 5)))

    [usage] = engine.budgets_with_spending()

    assert usage.percentage_used == MAX_BUDGET_USAGE


def test_near_limit_but_not_over(engine, store):
    store.upsert_budget(budget("Food & Dining", 1000, threshold=0.8))
    add(store, make_txn(850, "Zomato", category="Food & Dining", when=ms(2025, 3, 5)))

    [usage] = engine.budgets_with_spending()

    assert usage.is_near_limit is True
    assert usage.is_over_budget is False
    assert usage.remaining_amount == pytest.approx(150)


def test_budget_ignores_received_and_other_months(engine, store):
    store.upsert_budget(budget("Shopping", 1000))
    add(store,
        make_txn(400, "Amazon", category="Shopping", when=ms(2025, 2, 27)),
        make_txn(300, "Refund", category="Shopping", when=ms(2025, 3, 2), direction=Direction.RECEIVED),
        make_txn(100, "Amazon", category="Shopping", when=ms(2025, 3, 2)))

    [usage] = engine.budgets_with_spending()

    assert usage.current_spending == pytest.approx(100)
    assert usage.is_near_limit is False


def test_weekly_window_starts_on_configured_day(store):
    # NOW is Saturday 15 March; Monday start is the 10th, Sunday start the 9th
    store.upsert_budget(budget("Food", 1000, period=BudgetPeriod.WEEKLY))
    add(store, make_txn(200, "Cafe", category="Food", when=ms(2025, 3, 9, 18, 0)))

    monday = AggregationEngine(store, clock=lambda: NOW, week_start=0)
    sunday = AggregationEngine(store, clock=lambda: NOW, week_start=6)

    assert monday.budgets_with_spending()[0].current_spending == 0
    assert sunday.budgets_with_spending()[0].current_spending == pytest.approx(200)


def test_start_of_week():
    assert start_of_week(NOW) == datetime(2025, 3, 10)
    assert start_of_week(NOW, 5) == datetime(2025, 3, 15)
    assert start_of_week(NOW, 6) == datetime(2025, 3, 9)


def test_one_spending_query_per_period_type(clock):
    class CountingStore(MemoryStore):
        spending_calls = 0

        def spending_by_category(self, start_ms, end_ms):
            CountingStore.spending_calls += 1
            return super().spending_by_category(start_ms, end_ms)

    store = CountingStore()
    store.upsert_budget(budget("Shopping", 1000))
    store.upsert_budget(budget("Food", 500))
    store.upsert_budget(budget("Transport", 300))
    store.upsert_budget(budget("Cafe", 200, period=BudgetPeriod.WEEKLY))

    usages = AggregationEngine(store, clock=clock).budgets_with_spending()

    assert len(usages) == 4
    assert CountingStore.spending_calls == 2


def test_inactive_budgets_are_skipped(engine, store):
    budget_id = store.upsert_budget(budget("Shopping", 1000))
    store.deactivate_budget(budget_id)

    assert engine.budgets_with_spending() == []
    assert engine.budget_for_category("Shopping") is None


def test_budget_for_category(engine, store):
    store.upsert_budget(budget("Shopping", 1000))
    add(store, make_txn(250, "Amazon", category="Shopping", when=ms(2025, 3, 5)))

    usage = engine.budget_for_category("Shopping")

    assert usage.percentage_used == pytest.approx(0.25)


def test_budget_alerts_sorted_by_usage(engine, store):
    store.upsert_budget(budget("Shopping", 1000))
    store.upsert_budget(budget("Food", 100))
    store.upsert_budget(budget("Transport", 1000))
    add(store,
        make_txn(900, "Amazon", category="Shopping", when=ms(2025, 3, 5)),
        make_txn(150, "Zomato", category="Food", when=ms(2025, 3, 5)),
        make_txn(10, "Uber", category="Transport", when=ms(2025, 3, 5)))

    alerts = engine.statistics().budget_alerts

    assert [a.budget.category for a in alerts] == ["Food", "Shopping"]


# ---- trends -----------------------------------------------------------

def test_change_percent_is_zero_without_previous_spend(engine, store):
    add(store, make_txn(500, "Amazon", when=ms(2025, 3, 10)))

    trends = engine.trends(DateRange.LAST_30_DAYS)

    assert trends.total_spent == pytest.approx(500)
    assert trends.spending_change_percent == 0


def test_change_percent_against_previous_window(engine, store):
    add(store,
        make_txn(100, "Old", when=ms(2025, 1, 30)),   # previous 30-day window
        make_txn(150, "New", when=ms(2025, 3, 10)))

    trends = engine.trends(DateRange.LAST_30_DAYS)

    assert trends.spending_change_percent == pytest.approx(50.0)


def test_last_month_window_is_the_whole_previous_month(engine):
    start, end = engine.date_range_window(DateRange.LAST_MONTH)

    assert start == ms(2025, 2, 1)
    assert end == ms(2025, 3, 1) - 1


def test_last_month_trends_exclude_current_month(engine, store):
    add(store,
        make_txn(100, "Feb", when=ms(2025, 2, 14)),
        make_txn(999, "Mar", when=ms(2025, 3, 2)))

    trends = engine.trends(DateRange.LAST_MONTH)

    assert trends.total_spent == pytest.approx(100)
    assert trends.avg_daily_spend == pytest.approx(100 / 28)
    assert len(trends.daily_spending) == 28


def test_daily_series_is_zero_filled_and_keyed_by_date(engine, store):
    add(store,
        make_txn(40, "A", when=ms(2025, 3, 12, 9, 0)),
        make_txn(60, "B", when=ms(2025, 3, 12, 20, 0)),
        make_txn(10, "C", when=ms(2025, 2, 12, 9, 0)))  # same day-of-month, outside window

    series = engine.trends(DateRange.LAST_7_DAYS).daily_spending

    assert len(series) == 8
    assert series[0].label == "Mar 08"
    assert series[-1].label == "Mar 15"
    by_label = {d.label: d.amount for d in series}
    assert by_label["Mar 12"] == pytest.approx(100)
    assert by_label["Mar 13"] == 0
    assert series[4].date == ms(2025, 3, 12)


def test_daily_series_keeps_last_thirty_points(engine):
    series = engine.trends(DateRange.LAST_90_DAYS).daily_spending

    assert len(series) == 30
    assert series[-1].label == "Mar 15"


def test_breakdown_and_top_merchants(engine, store):
    txns = [make_txn(10 * (i + 1), f"Merchant {i}", when=ms(2025, 3, 14), category="Shopping") for i in range(12)]
    txns.append(make_txn(5, "Merchant 0", when=ms(2025, 3, 14), category="Food"))
    txns.append(make_txn(1000, "Salary", when=ms(2025, 3, 14), direction=Direction.RECEIVED))
    add(store, *txns)

    trends = engine.trends(DateRange.THIS_MONTH)

    assert len(trends.top_merchants) == 10
    assert trends.top_merchants[0].merchant_name == "Merchant 11"
    assert [c.category for c in trends.category_breakdown] == ["Shopping", "Food"]
    assert trends.category_breakdown[0].transaction_count == 12
    assert trends.total_received == pytest.approx(1000)
    assert trends.transaction_count == 14


# ---- Result wrappers --------------------------------------------------

def test_load_methods_wrap_store_failures(clock):
    class BrokenReads(FailingStore):
        def list_transactions(self):
            raise StoreError("read failed")

        def transactions_between(self, start_ms, end_ms):
            raise StoreError("read failed")

        def list_active_budgets(self):
            raise StoreError("read failed")

    engine = AggregationEngine(BrokenReads(), clock=clock)

    for result in (engine.load_statistics(), engine.load_budgets(), engine.load_trends(DateRange.LAST_7_DAYS)):
        assert not result.ok
        assert "read failed" in result.error


def test_load_statistics_success(engine):
    result = engine.load_statistics()

    assert result.ok
    assert result.value.total_sent == 0


def test_load_statistics_reports_unrepresentable_timestamps(engine, store):
    add(store, make_txn(10, "A", when=10 ** 20))

    result = engine.load_statistics()

    assert not result.ok
    assert result.error.startswith("Could not load statistics")
