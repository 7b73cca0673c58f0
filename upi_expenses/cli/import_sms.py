#!/usr/bin/env python3
"""
SMS import CLI

Imports UPI transactions from an exported SMS inbox (CSV or JSON lines).
"""
import argparse
import sys
from pathlib import Path

from upi_expenses.container import AppContainer
from upi_expenses.core.errors import ExpenseTrackerError, StoreError
from upi_expenses.core.message_source import load_messages, select_messages
from upi_expenses.store.memory import MemoryStore
from upi_expenses.store.postgres import PostgresStore
from upi_expenses.utils.config import Settings
from upi_expenses.utils.logging import configure_logging


def print_progress(processed: int, total: int):
    pct = processed / total if total else 1.0
    print(f"   ⏳ {processed}/{total} messages ({pct:.0%})", flush=True)


def print_sample(transactions, limit: int = 10):
    print(f"\n📋 Sample Results (first {limit}):")
    for i, txn in enumerate(transactions[:limit], 1):
        arrow = "→" if txn.direction.value == "SENT" else "←"
        print(f"   {i:2d}. {arrow} {txn.recipient_name:<32} ₹{txn.amount:>10,.2f}  {txn.category}  [{txn.source_app}]")
    if len(transactions) > limit:
        print(f"       ... and {len(transactions) - limit} more")


def main():
    """Main import function"""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description='Import UPI transactions from exported SMS messages')
    parser.add_argument('sms_file', help='Path to exported messages (.csv or .jsonl)')
    parser.add_argument('--days', type=int, default=settings.import_default_days,
                        help='Only import messages from the last N days (default: all)')
    parser.add_argument('--dry-run', action='store_true', help='Parse and categorize but do not insert')
    args = parser.parse_args()

    configure_logging(settings.log_level, settings.log_json)

    sms_path = Path(args.sms_file)
    if not sms_path.exists():
        print(f"❌ File not found: {sms_path}")
        sys.exit(1)

    print("=" * 80)
    print("📥 SMS IMPORT")
    print("=" * 80)
    print(f"File: {sms_path}")
    print(f"Window: {'last ' + str(args.days) + ' days' if args.days else 'all messages'}")
    print(f"Dry Run: {args.dry_run}")
    print("=" * 80)

    print("\n📄 Reading messages...")
    try:
        messages = select_messages(load_messages(sms_path), days=args.days)
    except (OSError, ValueError) as e:
        print(f"   ❌ Could not read {sms_path}: {e}")
        sys.exit(1)
    print(f"   ✅ {len(messages)} messages selected")

    if args.dry_run:
        store = MemoryStore()
    else:
        print("\n🔌 Connecting to database...")
        try:
            store = PostgresStore.connect()
            print("   ✅ Connected")
        except StoreError as e:
            print(f"   ❌ Connection failed: {e}")
            sys.exit(1)

    try:
        app = AppContainer(store, settings)

        print(f"\n🏷️  Parsing and categorizing {len(messages)} messages...")
        result = app.pipeline.import_history(messages, on_progress=print_progress)

        print("\n" + "=" * 80)
        print("📊 IMPORT SUMMARY")
        print("=" * 80)
        print(f"Messages processed: {result.total_processed}")
        print(f"✅ New transactions: {result.transactions_found}")
        print(f"⏭️  Skipped (duplicates): {result.duplicates}")
        print(f"🔍 Not a payment: {result.total_processed - result.transactions_found - result.duplicates}")
        for vendor, count in sorted(app.registry.stats['by_vendor'].items()):
            print(f"   • {vendor}: {count}")
        print("=" * 80)

        if args.dry_run:
            print_sample(store.list_transactions())
            print("\n🔍 DRY RUN - Not inserting into database")

    except ExpenseTrackerError as e:
        print(f"\n❌ Import failed: {e}")
        sys.exit(1)
    finally:
        if not args.dry_run:
            store.close()


if __name__ == '__main__':
    main()
