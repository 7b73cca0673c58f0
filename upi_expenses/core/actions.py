"""
User actions

Manual entry, edits, budgets and rules. Every method validates its input and
returns a Result carrying either the value or a message fit to show a user;
nothing here raises for bad input or store failures.
"""
import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Optional

from .categorizer import category_icon, seed_default_rules, suggest_keyword
from .errors import StoreError, ValidationError
from .message_source import now_ms
from .models import (
    Budget,
    BudgetPeriod,
    CategoryRule,
    DEFAULT_ALERT_THRESHOLD,
    DEFAULT_CATEGORY,
    Direction,
    MANUAL_SOURCE,
    MAX_AMOUNT,
    Result,
    Transaction,
    to_money,
)

logger = logging.getLogger(__name__)


def parse_positive_amount(value, field: str = "Amount") -> Decimal:
    try:
        amount = Decimal(str(value).replace(',', '').strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    money = to_money(amount)
    if money is None:
        raise ValidationError(f"{field} must be between 0.01 and {MAX_AMOUNT:,}")
    return money


def parse_choice(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"{field} must be one of: {', '.join(m.value for m in enum_cls)}")


def require_text(value: Optional[str], field: str) -> str:
    text = (value or '').strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


class ExpenseService:
    """Explicit user actions against the store"""

    def __init__(self, store):
        self.store = store

    def _attempt(self, action: str, fn, *args, **kwargs) -> Result:
        try:
            return Result.success(fn(*args, **kwargs))
        except ValidationError as e:
            return Result.failure(str(e))
        except StoreError as e:
            logger.error("Failed to %s: %s", action, e)
            return Result.failure(f"Could not {action}. Please try again.")

    # ---- transactions -------------------------------------------------

    def add_transaction(
        self,
        amount,
        recipient_name: str,
        direction: Direction = Direction.SENT,
        category: str = DEFAULT_CATEGORY,
        notes: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Result:
        """Manual entry; Result.value is the stored Transaction"""
        def add():
            txn = Transaction(
                amount=parse_positive_amount(amount),
                recipient_name=require_text(recipient_name, "Recipient"),
                direction=parse_choice(Direction, direction, "Direction"),
                timestamp=timestamp if timestamp is not None else now_ms(),
                category=(category or '').strip() or DEFAULT_CATEGORY,
                notes=(notes or '').strip() or None,
                source_app=MANUAL_SOURCE,
                is_parsed=False,
            )
            txn.id = self.store.insert_transaction(txn)
            logger.info("Added manual transaction %s to %s", txn.amount, txn.recipient_name)
            return txn

        return self._attempt("add transaction", add)

    def _get_transaction(self, txn_id: int) -> Transaction:
        txn = self.store.get_transaction(txn_id)
        if txn is None:
            raise ValidationError(f"Transaction {txn_id} not found")
        return txn

    def update_notes(self, txn_id: int, notes: Optional[str]) -> Result:
        def update():
            txn = replace(self._get_transaction(txn_id), notes=(notes or '').strip() or None)
            self.store.update_transaction(txn)
            return txn

        return self._attempt("update notes", update)

    def update_category(self, txn_id: int, category: str) -> Result:
        def update():
            txn = replace(self._get_transaction(txn_id), category=require_text(category, "Category"))
            self.store.update_transaction(txn)
            return txn

        return self._attempt("update category", update)

    def delete_transaction(self, txn_id: int) -> Result:
        def delete():
            if not self.store.delete_transaction(txn_id):
                raise ValidationError(f"Transaction {txn_id} not found")
            return True

        return self._attempt("delete transaction", delete)

    def search_transactions(self, query: str) -> Result:
        if not (query or '').strip():
            return self._attempt("load transactions", self.store.list_transactions)
        return self._attempt("search transactions", self.store.search_transactions, query.strip())

    def transactions_by_category(self, category: str) -> Result:
        return self._attempt("load transactions", self.store.transactions_by_category, category)

    # ---- budgets ------------------------------------------------------

    def save_budget(
        self,
        category: str,
        limit_amount,
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        alert_threshold: float = DEFAULT_ALERT_THRESHOLD,
        budget_id: Optional[int] = None,
    ) -> Result:
        """
        Create or edit a budget

        Without budget_id, an existing active budget for the same category is
        edited instead of adding a second one. Result.value is the saved Budget.
        """
        def save():
            name = require_text(category, "Category")
            limit = parse_positive_amount(limit_amount, "Budget amount")
            try:
                threshold = float(alert_threshold)
            except (TypeError, ValueError):
                raise ValidationError("Alert threshold must be a number")
            if not 0 < threshold <= 1:
                raise ValidationError("Alert threshold must be between 0 and 1")

            existing = None
            if budget_id is not None:
                existing = self.store.get_budget(budget_id)
                if existing is None:
                    raise ValidationError(f"Budget {budget_id} not found")
            else:
                existing = next(
                    (b for b in self.store.list_active_budgets() if b.category == name), None
                )

            budget = Budget(
                category=name,
                limit_amount=limit,
                period=parse_choice(BudgetPeriod, period, "Period"),
                alert_threshold=threshold,
                is_active=True,
                created_at=existing.created_at if existing else now_ms(),
                id=existing.id if existing else None,
            )
            budget.id = self.store.upsert_budget(budget)
            return budget

        return self._attempt("save budget", save)

    def delete_budget(self, budget_id: int) -> Result:
        def delete():
            if not self.store.deactivate_budget(budget_id):
                raise ValidationError(f"Budget {budget_id} not found")
            return True

        return self._attempt("delete budget", delete)

    # ---- category rules -----------------------------------------------

    def save_category_rule(self, recipient_name: str, category: str, icon: Optional[str] = None) -> Result:
        """
        Remember a category for a recipient

        Result.value is False when a rule for the suggested keyword already exists.
        """
        def save():
            keyword = suggest_keyword(require_text(recipient_name, "Recipient"))
            if not keyword:
                raise ValidationError("Could not derive a keyword from the recipient name")
            name = require_text(category, "Category")

            if self.store.find_rule_by_keyword(keyword) is not None:
                return False

            self.store.insert_rule(CategoryRule(
                keyword=keyword,
                category=name,
                icon=icon or category_icon(name),
                is_custom=True,
            ))
            logger.info("Saved rule '%s' -> %s", keyword, name)
            return True

        return self._attempt("save rule", save)

    def delete_rule(self, rule_id: int) -> Result:
        return self._attempt("delete rule", self.store.delete_rule, rule_id)

    def delete_custom_rules(self) -> Result:
        return self._attempt("delete custom rules", self.store.delete_custom_rules)

    def reset_rules_to_defaults(self) -> Result:
        """Drop every rule and reseed the built-in set; Result.value is the seeded count"""
        def reset():
            self.store.delete_all_rules()
            return seed_default_rules(self.store)

        return self._attempt("reset rules", reset)

    def categories(self) -> Result:
        def load():
            return sorted(set(self.store.list_categories()) | {DEFAULT_CATEGORY})

        return self._attempt("load categories", load)
