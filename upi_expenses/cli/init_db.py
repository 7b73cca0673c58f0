#!/usr/bin/env python3
"""
Database initialization script

Creates the expense schema and seeds the default category rules.
"""
import argparse
import sys
from pathlib import Path

from upi_expenses.core.categorizer import seed_default_rules
from upi_expenses.core.errors import StoreError
from upi_expenses.store.postgres import PostgresStore
from upi_expenses.utils.config import Settings
from upi_expenses.utils.logging import configure_logging

SCHEMA_FILE = Path(__file__).parent.parent / "db" / "schema.sql"


def run_sql_file(conn, sql_file: Path, description: str):
    """Execute a SQL file"""
    print(f"\n📄 {description}")
    print(f"   File: {sql_file}")

    with open(sql_file, 'r') as f:
        sql = f.read()

    cursor = conn.cursor()
    try:
        cursor.execute(sql)
        conn.commit()
        print("   ✅ Success")
    except Exception as e:
        conn.rollback()
        print(f"   ❌ Error: {e}")
        raise
    finally:
        cursor.close()


def print_summary(store: PostgresStore):
    """Print database summary"""
    print("\n" + "=" * 80)
    print("📊 DATABASE SUMMARY")
    print("=" * 80)

    rules = store.list_rules()
    custom = sum(1 for r in rules if r.is_custom)
    print(f"Category rules: {len(rules)} ({custom} custom)")
    print(f"Categories: {len(store.list_categories())}")
    print(f"Active budgets: {len(store.list_active_budgets())}")
    print(f"Transactions: {store.count_transactions()}")

    print("=" * 80)


def main():
    """Main initialization function"""
    parser = argparse.ArgumentParser(description='Create the expense database schema')
    parser.add_argument('--reset-rules', action='store_true',
                        help='Delete all category rules (including custom ones) and reseed defaults')
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)

    print("=" * 80)
    print("🚀 EXPENSE DATABASE INITIALIZATION")
    print("=" * 80)

    print("\n🔌 Connecting to database...")
    try:
        store = PostgresStore.connect()
        print("   ✅ Connected")
    except StoreError as e:
        print(f"   ❌ Connection failed: {e}")
        print("\nCheck DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD in .env")
        sys.exit(1)

    try:
        # 1. Create schema
        run_sql_file(store.conn, SCHEMA_FILE, "Creating database schema")

        # 2. Seed rules
        print("\n📚 Seeding category rules...")
        if args.reset_rules:
            removed = store.delete_all_rules()
            print(f"   🗑️  Removed {removed} existing rules")
        seeded = seed_default_rules(store)
        if seeded:
            print(f"   ✅ Added {seeded} default rules")
        else:
            print("   ⏭️  Rules already present, nothing to seed")

        print_summary(store)
        print("\n✅ Database ready")

    except Exception as e:
        print(f"\n❌ Initialization failed: {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == '__main__':
    main()
