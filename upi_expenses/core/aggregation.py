"""
Aggregation Engine

Read-only analytics over stored transactions: overall statistics, budget
utilization and trends for a date range. Grouping is done with pandas.
All calendar math uses local time.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .categorizer import category_icon
from .errors import ExpenseTrackerError
from .models import (
    Budget,
    BudgetPeriod,
    BudgetWithSpending,
    CategoryInsight,
    CategorySpending,
    CategorySummary,
    DailySpending,
    DateRange,
    Direction,
    Insights,
    MerchantInsight,
    MerchantSpending,
    MonthlySummary,
    Result,
    Statistics,
    Transaction,
    Trends,
)

logger = logging.getLogger(__name__)

# percentage_used is clamped to [0, MAX_BUDGET_USAGE]
MAX_BUDGET_USAGE = 2.0

RECENT_TRANSACTIONS = 50
MONTHS_SHOWN = 6
DAILY_POINTS = 30
TOP_MERCHANTS = 10

DAY_MS = 24 * 60 * 60 * 1000

COLUMNS = ['id', 'amount', 'recipient', 'direction', 'category', 'timestamp', 'day', 'year', 'month']


def to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt).replace(day=1)


def start_of_week(dt: datetime, week_start: int = 0) -> datetime:
    day = start_of_day(dt)
    return day - timedelta(days=(day.weekday() - week_start) % 7)


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """One row per transaction, with local calendar fields precomputed"""
    rows = []
    for t in transactions:
        dt = datetime.fromtimestamp(t.timestamp / 1000)
        rows.append({
            'id': t.id,
            'amount': float(t.amount),
            'recipient': t.recipient_name,
            'direction': t.direction.value,
            'category': t.category,
            'timestamp': t.timestamp,
            'day': dt.date(),
            'year': dt.year,
            'month': dt.month,
        })

    df = pd.DataFrame(rows, columns=COLUMNS)
    df['amount'] = df['amount'].astype(float)
    return df


def _sum(series) -> float:
    return float(series.sum()) if len(series) else 0.0


class AggregationEngine:
    """
    Computes statistics, budget usage and trends

    Args:
        store: Store with transaction and budget reads
        clock: Returns the current local datetime (injectable for tests)
        week_start: First day of a WEEKLY budget window, 0 = Monday
    """

    def __init__(self, store, clock: Optional[Callable[[], datetime]] = None, week_start: int = 0):
        self.store = store
        self.clock = clock or datetime.now
        self.week_start = week_start

    # ---- windows ------------------------------------------------------

    def period_window(self, period: BudgetPeriod, now: Optional[datetime] = None) -> Tuple[int, int]:
        now = now or self.clock()
        if period == BudgetPeriod.WEEKLY:
            start = start_of_week(now, self.week_start)
        else:
            start = start_of_month(now)
        return to_ms(start), to_ms(now)

    def date_range_window(self, date_range: DateRange, now: Optional[datetime] = None) -> Tuple[int, int]:
        now = now or self.clock()
        if date_range == DateRange.LAST_7_DAYS:
            return to_ms(now - timedelta(days=7)), to_ms(now)
        if date_range == DateRange.LAST_30_DAYS:
            return to_ms(now - timedelta(days=30)), to_ms(now)
        if date_range == DateRange.LAST_90_DAYS:
            return to_ms(now - timedelta(days=90)), to_ms(now)
        if date_range == DateRange.THIS_MONTH:
            return to_ms(start_of_month(now)), to_ms(now)

        # LAST_MONTH: whole previous calendar month
        this_month = start_of_month(now)
        last_month = start_of_month(this_month - timedelta(days=1))
        return to_ms(last_month), to_ms(this_month) - 1

    # ---- statistics ---------------------------------------------------

    def statistics(self, transactions: Optional[List[Transaction]] = None) -> Statistics:
        """
        Totals, category and monthly summaries, recent activity and insights

        Args:
            transactions: Subset to summarize (default: every stored transaction)
        """
        if transactions is None:
            transactions = self.store.list_transactions()

        df = transactions_frame(transactions)
        sent_mask = df['direction'] == 'SENT'
        df['sent'] = df['amount'].where(sent_mask, 0.0)
        df['received'] = df['amount'].where(~sent_mask, 0.0)

        total_sent = _sum(df['sent'])
        total_received = _sum(df['received'])

        recent = sorted(transactions, key=lambda t: t.timestamp, reverse=True)[:RECENT_TRANSACTIONS]

        return Statistics(
            total_sent=total_sent,
            total_received=total_received,
            net_balance=total_received - total_sent,
            category_summaries=self._category_summaries(df),
            monthly_summaries=self._monthly_summaries(df),
            recent_transactions=recent,
            insights=self._insights(df),
            budget_alerts=self.budget_alerts(),
        )

    def _category_summaries(self, df: pd.DataFrame) -> List[CategorySummary]:
        if df.empty:
            return []

        grouped = df.groupby('category').agg(
            total_amount=('amount', 'sum'),
            transaction_count=('amount', 'count'),
            sent_amount=('sent', 'sum'),
            received_amount=('received', 'sum'),
        ).sort_values('total_amount', ascending=False, kind='mergesort')

        return [
            CategorySummary(
                category=category,
                icon=category_icon(category),
                total_amount=float(row['total_amount']),
                transaction_count=int(row['transaction_count']),
                sent_amount=float(row['sent_amount']),
                received_amount=float(row['received_amount']),
            )
            for category, row in grouped.iterrows()
        ]

    def _monthly_summaries(self, df: pd.DataFrame) -> List[MonthlySummary]:
        if df.empty:
            return []

        grouped = df.groupby(['year', 'month']).agg(
            sent_amount=('sent', 'sum'),
            received_amount=('received', 'sum'),
            transaction_count=('amount', 'count'),
        ).sort_index().tail(MONTHS_SHOWN)

        return [
            MonthlySummary(
                month=datetime(int(year), int(month), 1).strftime('%b %Y'),
                sent_amount=float(row['sent_amount']),
                received_amount=float(row['received_amount']),
                transaction_count=int(row['transaction_count']),
            )
            for (year, month), row in grouped.iterrows()
        ]

    def _insights(self, df: pd.DataFrame) -> Insights:
        """Spending highlights for the current calendar month"""
        now = self.clock()
        month_start = to_ms(start_of_month(now))
        spent = df[(df['direction'] == 'SENT') & (df['timestamp'] >= month_start) & (df['timestamp'] <= to_ms(now))]

        if spent.empty:
            return Insights()

        total = _sum(spent['amount'])
        merchants = spent.groupby('recipient')['amount'].sum().sort_values(ascending=False, kind='mergesort')
        categories = spent.groupby('category')['amount'].count().sort_values(ascending=False, kind='mergesort')

        return Insights(
            top_merchant=MerchantInsight(name=merchants.index[0], amount=float(merchants.iloc[0])),
            frequent_category=CategoryInsight(name=categories.index[0], transaction_count=int(categories.iloc[0])),
            avg_daily_spend=total / now.day,
            total_spent_this_month=total,
            transactions_this_month=len(spent),
        )

    # ---- budgets ------------------------------------------------------

    def _with_spending(self, budget: Budget, spend: float) -> BudgetWithSpending:
        limit = float(budget.limit_amount)
        if limit > 0:
            percentage = min(max(spend / limit, 0.0), MAX_BUDGET_USAGE)
        else:
            percentage = 0.0

        return BudgetWithSpending(
            budget=budget,
            current_spending=spend,
            remaining_amount=max(limit - spend, 0.0),
            percentage_used=percentage,
            is_over_budget=spend > limit,
            is_near_limit=percentage >= budget.alert_threshold,
        )

    def budgets_with_spending(self) -> List[BudgetWithSpending]:
        """
        Current-period spend for every active budget

        Issues one spending query per period type, not one per budget.
        """
        budgets = self.store.list_active_budgets()
        if not budgets:
            return []

        now = self.clock()
        spending: Dict[BudgetPeriod, Dict[str, float]] = {}
        for period in {b.period for b in budgets}:
            start, end = self.period_window(period, now)
            spending[period] = self.store.spending_by_category(start, end)

        return [
            self._with_spending(b, float(spending[b.period].get(b.category, 0.0)))
            for b in budgets
        ]

    def budget_for_category(self, category: str) -> Optional[BudgetWithSpending]:
        budget = next((b for b in self.store.list_active_budgets() if b.category == category), None)
        if budget is None:
            return None

        start, end = self.period_window(budget.period)
        spend = self.store.spending_by_category(start, end).get(category, 0.0)
        return self._with_spending(budget, float(spend))

    def budget_alerts(self) -> List[BudgetWithSpending]:
        """Budgets near or over their limit, worst first"""
        alerts = [b for b in self.budgets_with_spending() if b.is_near_limit or b.is_over_budget]
        return sorted(alerts, key=lambda b: b.percentage_used, reverse=True)

    # ---- trends -------------------------------------------------------

    def _daily_series(self, sent: pd.DataFrame, start_ms: int, end_ms: int) -> List[DailySpending]:
        by_day = sent.groupby('day')['amount'].sum() if not sent.empty else pd.Series(dtype=float)

        first = start_of_day(datetime.fromtimestamp(start_ms / 1000))
        last = datetime.fromtimestamp(end_ms / 1000).date()

        series = []
        day = first
        while day.date() <= last:
            series.append(DailySpending(
                date=to_ms(day),
                label=day.strftime('%b %d'),
                amount=float(by_day.get(day.date(), 0.0)),
            ))
            day = start_of_day(day + timedelta(days=1, hours=2))  # DST-safe step

        return series[-DAILY_POINTS:]

    def trends(self, date_range: DateRange) -> Trends:
        start_ms, end_ms = self.date_range_window(date_range)
        df = transactions_frame(self.store.transactions_between(start_ms, end_ms))

        sent = df[df['direction'] == 'SENT']
        total_spent = _sum(sent['amount'])
        total_received = _sum(df[df['direction'] == 'RECEIVED']['amount'])

        category_breakdown = []
        top_merchants = []
        if not sent.empty:
            by_category = sent.groupby('category')['amount'].agg(['sum', 'count']) \
                .sort_values('sum', ascending=False, kind='mergesort')
            category_breakdown = [
                CategorySpending(category=name, amount=float(row['sum']), transaction_count=int(row['count']))
                for name, row in by_category.iterrows()
            ]

            by_merchant = sent.groupby('recipient')['amount'].agg(['sum', 'count']) \
                .sort_values('sum', ascending=False, kind='mergesort').head(TOP_MERCHANTS)
            top_merchants = [
                MerchantSpending(merchant_name=name, amount=float(row['sum']), transaction_count=int(row['count']))
                for name, row in by_merchant.iterrows()
            ]

        # Preceding window of equal length
        duration = end_ms - start_ms
        previous_spent = sum(
            float(t.amount)
            for t in self.store.transactions_between(start_ms - duration - 1, start_ms - 1)
            if t.direction == Direction.SENT
        )
        if previous_spent > 0:
            change = (total_spent - previous_spent) / previous_spent * 100
        else:
            change = 0.0

        days = max(1, math.ceil(duration / DAY_MS))

        return Trends(
            date_range=date_range,
            total_spent=total_spent,
            total_received=total_received,
            daily_spending=self._daily_series(sent, start_ms, end_ms),
            category_breakdown=category_breakdown,
            top_merchants=top_merchants,
            spending_change_percent=change,
            transaction_count=len(df),
            avg_daily_spend=total_spent / days,
        )

    # ---- Result wrappers ----------------------------------------------

    def _load(self, what: str, fn, *args) -> Result:
        try:
            return Result.success(fn(*args))
        except (ExpenseTrackerError, ValueError, OverflowError, OSError) as e:
            # the non-store errors come from timestamps datetime cannot represent
            logger.error("Failed to load %s: %s", what, e)
            return Result.failure(f"Could not load {what}: {e}")

    def load_statistics(self, transactions: Optional[List[Transaction]] = None) -> Result:
        return self._load('statistics', self.statistics, transactions)

    def load_budgets(self) -> Result:
        return self._load('budgets', self.budgets_with_spending)

    def load_trends(self, date_range: DateRange) -> Result:
        return self._load('trends', self.trends, date_range)
