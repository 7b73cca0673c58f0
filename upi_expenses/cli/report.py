#!/usr/bin/env python3
"""
Spending report CLI

Prints overall statistics, budget usage and trends for a date range.
"""
import argparse
import sys

from upi_expenses.container import AppContainer
from upi_expenses.core.errors import StoreError
from upi_expenses.core.message_source import load_messages, select_messages
from upi_expenses.core.models import DateRange
from upi_expenses.store.memory import MemoryStore
from upi_expenses.store.postgres import PostgresStore
from upi_expenses.utils.config import Settings
from upi_expenses.utils.logging import configure_logging

RANGE_CHOICES = {
    '7d': DateRange.LAST_7_DAYS,
    '30d': DateRange.LAST_30_DAYS,
    '90d': DateRange.LAST_90_DAYS,
    'this-month': DateRange.THIS_MONTH,
    'last-month': DateRange.LAST_MONTH,
}


def money(value: float) -> str:
    return f"₹{value:,.2f}"


def print_statistics(stats):
    print("\n" + "=" * 80)
    print("📊 OVERVIEW")
    print("=" * 80)
    print(f"Sent:     {money(stats.total_sent)}")
    print(f"Received: {money(stats.total_received)}")
    print(f"Net:      {money(stats.net_balance)}")

    if stats.category_summaries:
        print("\n🏷️  By category:")
        for c in stats.category_summaries:
            print(f"   {c.category:<20} {money(c.total_amount):>14}  ({c.transaction_count} txns)")

    if stats.monthly_summaries:
        print("\n📅 By month:")
        for m in stats.monthly_summaries:
            print(f"   {m.month:<10} sent {money(m.sent_amount):>14}  received {money(m.received_amount):>14}")

    insights = stats.insights
    if insights.transactions_this_month:
        print("\n💡 This month:")
        print(f"   Spent {money(insights.total_spent_this_month)} "
              f"across {insights.transactions_this_month} payments "
              f"({money(insights.avg_daily_spend)}/day)")
        if insights.top_merchant:
            print(f"   Top merchant: {insights.top_merchant.name} ({money(insights.top_merchant.amount)})")
        if insights.frequent_category:
            print(f"   Most frequent: {insights.frequent_category.name} "
                  f"({insights.frequent_category.transaction_count} payments)")


def print_budgets(budgets):
    print("\n" + "=" * 80)
    print("💰 BUDGETS")
    print("=" * 80)
    if not budgets:
        print("No active budgets")
        return

    for b in budgets:
        if b.is_over_budget:
            status = "🚨"
        elif b.is_near_limit:
            status = "⚠️ "
        else:
            status = "✅"
        print(f"{status} {b.budget.category:<20} {money(b.current_spending):>14} / "
              f"{money(float(b.budget.limit_amount))} {b.budget.period.value.lower():<8} "
              f"{b.percentage_used:.0%}")


def print_trends(trends):
    print("\n" + "=" * 80)
    print(f"📈 TRENDS ({trends.date_range.label})")
    print("=" * 80)
    print(f"Spent {money(trends.total_spent)}, received {money(trends.total_received)} "
          f"in {trends.transaction_count} transactions")
    print(f"Average per day: {money(trends.avg_daily_spend)}")
    print(f"Change vs previous period: {trends.spending_change_percent:+.1f}%")

    if trends.top_merchants:
        print("\n🏪 Top merchants:")
        for m in trends.top_merchants:
            print(f"   {m.merchant_name:<30} {money(m.amount):>14}  ({m.transaction_count})")


def main():
    parser = argparse.ArgumentParser(description='Print spending statistics, budgets and trends')
    parser.add_argument('--range', choices=sorted(RANGE_CHOICES), default='30d',
                        help='Trend window (default: 30d)')
    parser.add_argument('--from-file', metavar='SMS_FILE',
                        help='Report on an exported SMS file instead of the database')
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)

    if args.from_file:
        store = MemoryStore()
    else:
        try:
            store = PostgresStore.connect()
        except StoreError as e:
            print(f"❌ Connection failed: {e}")
            sys.exit(1)

    try:
        app = AppContainer(store, settings)
        if args.from_file:
            app.pipeline.import_history(select_messages(load_messages(args.from_file)))

        results = [
            (app.aggregation.load_statistics(), print_statistics),
            (app.aggregation.load_budgets(), print_budgets),
            (app.aggregation.load_trends(RANGE_CHOICES[args.range]), print_trends),
        ]
        failed = False
        for result, printer in results:
            if result.ok:
                printer(result.value)
            else:
                print(f"\n❌ {result.error}")
                failed = True

        if failed:
            sys.exit(1)
    except (OSError, ValueError, StoreError) as e:
        print(f"❌ Report failed: {e}")
        sys.exit(1)
    finally:
        if not args.from_file:
            store.close()


if __name__ == '__main__':
    main()
