"""
Postgres-backed store

Every public method runs in its own short database transaction: commit on
success, rollback and StoreError on any psycopg2 failure.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import psycopg2

from upi_expenses.core.errors import StoreError
from upi_expenses.core.models import (
    Budget,
    BudgetPeriod,
    CategoryRule,
    Direction,
    Transaction,
)
from upi_expenses.utils.db_connection import get_db_connection

logger = logging.getLogger(__name__)

TXN_COLUMNS = """
    id, amount, recipient_name, direction, timestamp_ms, category,
    notes, raw_text, source_app, reference_id, is_parsed
"""

INSERT_TXN_SQL = """
    INSERT INTO transactions (
        amount, recipient_name, direction, timestamp_ms, category,
        notes, raw_text, source_app, reference_id, is_parsed
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (reference_id) WHERE reference_id IS NOT NULL AND is_parsed
    DO NOTHING
    RETURNING id
"""

RULE_COLUMNS = "id, keyword, category, icon, is_custom"

BUDGET_COLUMNS = "id, category, limit_amount, period, alert_threshold, is_active, created_at"


def _txn_params(txn: Transaction) -> tuple:
    return (
        txn.amount, txn.recipient_name, txn.direction.value, txn.timestamp,
        txn.category, txn.notes, txn.raw_text, txn.source_app,
        txn.reference_id, txn.is_parsed,
    )


def _row_to_transaction(row) -> Transaction:
    return Transaction(
        id=row[0],
        amount=Decimal(str(row[1])),
        recipient_name=row[2],
        direction=Direction(row[3]),
        timestamp=int(row[4]),
        category=row[5],
        notes=row[6],
        raw_text=row[7] or '',
        source_app=row[8],
        reference_id=row[9],
        is_parsed=bool(row[10]),
    )


def _row_to_rule(row) -> CategoryRule:
    return CategoryRule(id=row[0], keyword=row[1], category=row[2], icon=row[3], is_custom=bool(row[4]))


def _row_to_budget(row) -> Budget:
    return Budget(
        id=row[0],
        category=row[1],
        limit_amount=Decimal(str(row[2])),
        period=BudgetPeriod(row[3]),
        alert_threshold=float(row[4]),
        is_active=bool(row[5]),
        created_at=int(row[6]),
    )


class PostgresStore:
    """Store implementation over a psycopg2 connection"""

    def __init__(self, conn):
        self.conn = conn

    @classmethod
    def connect(cls, **overrides) -> "PostgresStore":
        try:
            return cls(get_db_connection(**overrides))
        except psycopg2.Error as e:
            raise StoreError(f"Could not connect to database: {e}") from e

    def close(self):
        self.conn.close()

    def _execute(self, sql: str, params=None, fetch: Optional[str] = None):
        """
        Run one statement in its own transaction

        Args:
            fetch: 'one', 'all' or None (returns rowcount)
        """
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, params)
            if fetch == 'one':
                result = cursor.fetchone()
            elif fetch == 'all':
                result = cursor.fetchall()
            else:
                result = cursor.rowcount
            self.conn.commit()
            return result
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error("Database error: %s", e)
            raise StoreError(str(e)) from e
        finally:
            cursor.close()

    # ---- transactions -------------------------------------------------

    def insert_transaction(self, txn: Transaction) -> Optional[int]:
        """Returns the new id, or None if a parsed transaction with the same reference exists"""
        row = self._execute(INSERT_TXN_SQL, _txn_params(txn), fetch='one')
        return row[0] if row else None

    def insert_transactions(self, txns: Iterable[Transaction]) -> int:
        """
        Insert a batch atomically

        Rows colliding with an existing parsed reference are skipped.
        Any other failure rolls back the whole batch.

        Returns:
            Number of rows inserted
        """
        cursor = self.conn.cursor()
        inserted = 0
        try:
            for txn in txns:
                cursor.execute(INSERT_TXN_SQL, _txn_params(txn))
                if cursor.fetchone():
                    inserted += 1
            self.conn.commit()
            return inserted
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error("Batch insert rolled back: %s", e)
            raise StoreError(str(e)) from e
        finally:
            cursor.close()

    def find_by_reference_id(self, reference_id: str) -> Optional[Transaction]:
        row = self._execute(
            f"SELECT {TXN_COLUMNS} FROM transactions WHERE reference_id = %s ORDER BY id LIMIT 1",
            (reference_id,), fetch='one',
        )
        return _row_to_transaction(row) if row else None

    def _select_transactions(self, where: str = '', params=None) -> List[Transaction]:
        rows = self._execute(
            f"SELECT {TXN_COLUMNS} FROM transactions {where} ORDER BY timestamp_ms DESC, id DESC",
            params, fetch='all',
        )
        return [_row_to_transaction(r) for r in rows]

    def list_transactions(self) -> List[Transaction]:
        """All transactions, newest first"""
        return self._select_transactions()

    def transactions_between(self, start_ms: int, end_ms: int) -> List[Transaction]:
        return self._select_transactions("WHERE timestamp_ms BETWEEN %s AND %s", (start_ms, end_ms))

    def transactions_by_category(self, category: str) -> List[Transaction]:
        return self._select_transactions("WHERE category = %s", (category,))

    def search_transactions(self, query: str) -> List[Transaction]:
        return self._select_transactions(
            """
            WHERE strpos(lower(recipient_name), lower(%s)) > 0
               OR strpos(lower(COALESCE(notes, '')), lower(%s)) > 0
            """,
            (query, query),
        )

    def count_transactions(self) -> int:
        return self._execute("SELECT COUNT(*) FROM transactions", fetch='one')[0]

    def get_transaction(self, txn_id: int) -> Optional[Transaction]:
        row = self._execute(f"SELECT {TXN_COLUMNS} FROM transactions WHERE id = %s", (txn_id,), fetch='one')
        return _row_to_transaction(row) if row else None

    def update_transaction(self, txn: Transaction) -> bool:
        updated = self._execute("""
            UPDATE transactions SET
                amount = %s, recipient_name = %s, direction = %s, timestamp_ms = %s,
                category = %s, notes = %s, raw_text = %s, source_app = %s,
                reference_id = %s, is_parsed = %s
            WHERE id = %s
        """, _txn_params(txn) + (txn.id,))
        return updated > 0

    def delete_transaction(self, txn_id: int) -> bool:
        return self._execute("DELETE FROM transactions WHERE id = %s", (txn_id,)) > 0

    def spending_by_category(self, start_ms: int, end_ms: int) -> Dict[str, float]:
        """Sum of SENT amounts per category inside [start_ms, end_ms]"""
        rows = self._execute("""
            SELECT category, SUM(amount)
            FROM transactions
            WHERE direction = 'SENT' AND timestamp_ms BETWEEN %s AND %s
            GROUP BY category
        """, (start_ms, end_ms), fetch='all')
        return {category: float(total) for category, total in rows}

    # ---- category rules -----------------------------------------------

    def list_rules(self) -> List[CategoryRule]:
        rows = self._execute(f"SELECT {RULE_COLUMNS} FROM category_rules ORDER BY id", fetch='all')
        return [_row_to_rule(r) for r in rows]

    def insert_rule(self, rule: CategoryRule) -> int:
        row = self._execute("""
            INSERT INTO category_rules (keyword, category, icon, is_custom)
            VALUES (%s, %s, %s, %s)
            RETURNING id
        """, (rule.keyword, rule.category, rule.icon, rule.is_custom), fetch='one')
        return row[0]

    def insert_rules(self, rules: Iterable[CategoryRule]) -> int:
        params = [(r.keyword, r.category, r.icon, r.is_custom) for r in rules]
        cursor = self.conn.cursor()
        try:
            cursor.executemany("""
                INSERT INTO category_rules (keyword, category, icon, is_custom)
                VALUES (%s, %s, %s, %s)
            """, params)
            self.conn.commit()
            return len(params)
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error("Rule insert rolled back: %s", e)
            raise StoreError(str(e)) from e
        finally:
            cursor.close()

    def delete_rule(self, rule_id: int) -> bool:
        return self._execute("DELETE FROM category_rules WHERE id = %s", (rule_id,)) > 0

    def delete_custom_rules(self) -> int:
        return self._execute("DELETE FROM category_rules WHERE is_custom")

    def delete_all_rules(self) -> int:
        return self._execute("DELETE FROM category_rules")

    def find_rule_by_keyword(self, keyword: str) -> Optional[CategoryRule]:
        row = self._execute(
            f"SELECT {RULE_COLUMNS} FROM category_rules WHERE keyword = %s ORDER BY id LIMIT 1",
            (keyword,), fetch='one',
        )
        return _row_to_rule(row) if row else None

    def count_rules(self) -> int:
        return self._execute("SELECT COUNT(*) FROM category_rules", fetch='one')[0]

    def list_categories(self) -> List[str]:
        rows = self._execute("SELECT DISTINCT category FROM category_rules ORDER BY category", fetch='all')
        return [r[0] for r in rows]

    # ---- budgets ------------------------------------------------------

    def list_active_budgets(self) -> List[Budget]:
        rows = self._execute(f"SELECT {BUDGET_COLUMNS} FROM budgets WHERE is_active ORDER BY id", fetch='all')
        return [_row_to_budget(r) for r in rows]

    def list_budgets(self) -> List[Budget]:
        rows = self._execute(f"SELECT {BUDGET_COLUMNS} FROM budgets ORDER BY id", fetch='all')
        return [_row_to_budget(r) for r in rows]

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        row = self._execute(f"SELECT {BUDGET_COLUMNS} FROM budgets WHERE id = %s", (budget_id,), fetch='one')
        return _row_to_budget(row) if row else None

    def upsert_budget(self, budget: Budget) -> int:
        params = (
            budget.category, budget.limit_amount, budget.period.value,
            budget.alert_threshold, budget.is_active, budget.created_at,
        )
        if budget.id is not None:
            row = self._execute("""
                UPDATE budgets SET
                    category = %s, limit_amount = %s, period = %s,
                    alert_threshold = %s, is_active = %s, created_at = %s
                WHERE id = %s
                RETURNING id
            """, params + (budget.id,), fetch='one')
            if row:
                return row[0]

        row = self._execute("""
            INSERT INTO budgets (category, limit_amount, period, alert_threshold, is_active, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id
        """, params, fetch='one')
        return row[0]

    def deactivate_budget(self, budget_id: int) -> bool:
        return self._execute("UPDATE budgets SET is_active = FALSE WHERE id = %s", (budget_id,)) > 0
