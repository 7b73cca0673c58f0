"""
In-process store

Same operations as PostgresStore, kept in dicts behind a lock. Used for
--dry-run imports and in tests.
"""
import threading
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from upi_expenses.core.models import Budget, CategoryRule, Direction, Transaction


class MemoryStore:
    """Thread-safe in-memory store. Stored and returned objects are copies."""

    def __init__(self):
        self._lock = threading.RLock()
        self._transactions: Dict[int, Transaction] = {}
        self._rules: Dict[int, CategoryRule] = {}
        self._budgets: Dict[int, Budget] = {}
        self._next_txn_id = 1
        self._next_rule_id = 1
        self._next_budget_id = 1

    # ---- transactions -------------------------------------------------

    def _is_duplicate(self, txn: Transaction) -> bool:
        if not (txn.is_parsed and txn.reference_id):
            return False
        return any(
            t.is_parsed and t.reference_id == txn.reference_id
            for t in self._transactions.values()
        )

    def _add_transaction(self, txn: Transaction) -> int:
        txn_id = self._next_txn_id
        self._next_txn_id += 1
        self._transactions[txn_id] = replace(txn, id=txn_id)
        return txn_id

    def insert_transaction(self, txn: Transaction) -> Optional[int]:
        """Returns the new id, or None if a parsed transaction with the same reference exists"""
        with self._lock:
            if self._is_duplicate(txn):
                return None
            return self._add_transaction(txn)

    def insert_transactions(self, txns: Iterable[Transaction]) -> int:
        with self._lock:
            inserted = 0
            for txn in txns:
                if self._is_duplicate(txn):
                    continue
                self._add_transaction(txn)
                inserted += 1
            return inserted

    def find_by_reference_id(self, reference_id: str) -> Optional[Transaction]:
        with self._lock:
            for txn in self._transactions.values():
                if txn.reference_id == reference_id:
                    return replace(txn)
        return None

    def _sorted(self, txns) -> List[Transaction]:
        ordered = sorted(txns, key=lambda t: (t.timestamp, t.id), reverse=True)
        return [replace(t) for t in ordered]

    def list_transactions(self) -> List[Transaction]:
        """All transactions, newest first"""
        with self._lock:
            return self._sorted(self._transactions.values())

    def transactions_between(self, start_ms: int, end_ms: int) -> List[Transaction]:
        with self._lock:
            return self._sorted(
                t for t in self._transactions.values() if start_ms <= t.timestamp <= end_ms
            )

    def transactions_by_category(self, category: str) -> List[Transaction]:
        with self._lock:
            return self._sorted(t for t in self._transactions.values() if t.category == category)

    def search_transactions(self, query: str) -> List[Transaction]:
        needle = (query or '').lower()
        with self._lock:
            return self._sorted(
                t for t in self._transactions.values()
                if needle in t.recipient_name.lower() or needle in (t.notes or '').lower()
            )

    def count_transactions(self) -> int:
        with self._lock:
            return len(self._transactions)

    def get_transaction(self, txn_id: int) -> Optional[Transaction]:
        with self._lock:
            txn = self._transactions.get(txn_id)
            return replace(txn) if txn else None

    def update_transaction(self, txn: Transaction) -> bool:
        with self._lock:
            if txn.id not in self._transactions:
                return False
            self._transactions[txn.id] = replace(txn)
            return True

    def delete_transaction(self, txn_id: int) -> bool:
        with self._lock:
            return self._transactions.pop(txn_id, None) is not None

    def spending_by_category(self, start_ms: int, end_ms: int) -> Dict[str, float]:
        """Sum of SENT amounts per category inside [start_ms, end_ms]"""
        totals = defaultdict(float)
        with self._lock:
            for t in self._transactions.values():
                if t.direction == Direction.SENT and start_ms <= t.timestamp <= end_ms:
                    totals[t.category] += float(t.amount)
        return dict(totals)

    # ---- category rules -----------------------------------------------

    def list_rules(self) -> List[CategoryRule]:
        with self._lock:
            return [replace(self._rules[k]) for k in sorted(self._rules)]

    def insert_rule(self, rule: CategoryRule) -> int:
        with self._lock:
            rule_id = self._next_rule_id
            self._next_rule_id += 1
            self._rules[rule_id] = replace(rule, id=rule_id)
            return rule_id

    def insert_rules(self, rules: Iterable[CategoryRule]) -> int:
        with self._lock:
            return len([self.insert_rule(r) for r in rules])

    def delete_rule(self, rule_id: int) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def delete_custom_rules(self) -> int:
        with self._lock:
            custom = [k for k, r in self._rules.items() if r.is_custom]
            for k in custom:
                del self._rules[k]
            return len(custom)

    def delete_all_rules(self) -> int:
        with self._lock:
            count = len(self._rules)
            self._rules.clear()
            return count

    def find_rule_by_keyword(self, keyword: str) -> Optional[CategoryRule]:
        with self._lock:
            for k in sorted(self._rules):
                if self._rules[k].keyword == keyword:
                    return replace(self._rules[k])
        return None

    def count_rules(self) -> int:
        with self._lock:
            return len(self._rules)

    def list_categories(self) -> List[str]:
        with self._lock:
            return sorted({r.category for r in self._rules.values()})

    # ---- budgets ------------------------------------------------------

    def list_active_budgets(self) -> List[Budget]:
        with self._lock:
            return [replace(b) for k, b in sorted(self._budgets.items()) if b.is_active]

    def list_budgets(self) -> List[Budget]:
        with self._lock:
            return [replace(b) for k, b in sorted(self._budgets.items())]

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        with self._lock:
            budget = self._budgets.get(budget_id)
            return replace(budget) if budget else None

    def upsert_budget(self, budget: Budget) -> int:
        with self._lock:
            if budget.id is not None and budget.id in self._budgets:
                self._budgets[budget.id] = replace(budget)
                return budget.id
            budget_id = self._next_budget_id
            self._next_budget_id += 1
            self._budgets[budget_id] = replace(budget, id=budget_id)
            return budget_id

    def deactivate_budget(self, budget_id: int) -> bool:
        with self._lock:
            budget = self._budgets.get(budget_id)
            if budget is None:
                return False
            budget.is_active = False
            return True
