"""
Domain Models

Dataclasses shared by the parser, the ingestion pipeline, the store
and the aggregation engine.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, List, Optional

DEFAULT_CATEGORY = "Other"
MANUAL_SOURCE = "Manual"
UNKNOWN_RECIPIENT = "Unknown"
DEFAULT_ICON = "category"
DEFAULT_ALERT_THRESHOLD = 0.8

# transactions.amount is NUMERIC(12, 2)
CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(amount: Decimal) -> Optional[Decimal]:
    """Round to paise; None when the result is not a storable positive amount"""
    if not amount.is_finite() or amount > MAX_AMOUNT + 1:
        return None
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0 or amount > MAX_AMOUNT:
        return None
    return amount


class Direction(str, Enum):
    SENT = "SENT"
    RECEIVED = "RECEIVED"


class BudgetPeriod(str, Enum):
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"


class DateRange(Enum):
    """Trend windows offered to callers"""
    LAST_7_DAYS = "7 Days"
    LAST_30_DAYS = "30 Days"
    LAST_90_DAYS = "90 Days"
    THIS_MONTH = "This Month"
    LAST_MONTH = "Last Month"

    @property
    def label(self) -> str:
        return self.value


@dataclass
class ParseResult:
    """Fields pulled out of a single message by an extractor"""
    amount: Decimal
    recipient: str
    direction: Direction
    vendor: str
    reference_id: Optional[str] = None


@dataclass
class Transaction:
    """A money movement, either parsed from a message or entered by hand"""
    amount: Decimal
    recipient_name: str
    direction: Direction
    timestamp: int  # epoch millis
    category: str = DEFAULT_CATEGORY
    notes: Optional[str] = None
    raw_text: str = ""
    source_app: str = MANUAL_SOURCE
    reference_id: Optional[str] = None
    is_parsed: bool = False
    id: Optional[int] = None


@dataclass
class CategoryRule:
    keyword: str
    category: str
    icon: str = DEFAULT_ICON
    is_custom: bool = False
    id: Optional[int] = None


@dataclass
class Budget:
    category: str
    limit_amount: Decimal
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD
    is_active: bool = True
    created_at: int = 0  # epoch millis
    id: Optional[int] = None


@dataclass
class BudgetWithSpending:
    budget: Budget
    current_spending: float
    remaining_amount: float
    percentage_used: float
    is_over_budget: bool
    is_near_limit: bool


@dataclass
class CategorySummary:
    category: str
    icon: str
    total_amount: float
    transaction_count: int
    sent_amount: float
    received_amount: float


@dataclass
class MonthlySummary:
    month: str  # e.g. "Jan 2025"
    sent_amount: float
    received_amount: float
    transaction_count: int


@dataclass
class MerchantInsight:
    name: str
    amount: float


@dataclass
class CategoryInsight:
    name: str
    transaction_count: int


@dataclass
class Insights:
    """Current-month highlights shown next to the overall statistics"""
    top_merchant: Optional[MerchantInsight] = None
    frequent_category: Optional[CategoryInsight] = None
    avg_daily_spend: float = 0.0
    total_spent_this_month: float = 0.0
    transactions_this_month: int = 0


@dataclass
class Statistics:
    total_sent: float
    total_received: float
    net_balance: float
    category_summaries: List[CategorySummary]
    monthly_summaries: List[MonthlySummary]
    recent_transactions: List[Transaction] = field(default_factory=list)
    insights: Insights = field(default_factory=Insights)
    budget_alerts: List[BudgetWithSpending] = field(default_factory=list)


@dataclass
class DailySpending:
    date: int  # epoch millis of local midnight
    label: str
    amount: float


@dataclass
class CategorySpending:
    category: str
    amount: float
    transaction_count: int


@dataclass
class MerchantSpending:
    merchant_name: str
    amount: float
    transaction_count: int


@dataclass
class Trends:
    date_range: DateRange
    total_spent: float
    total_received: float
    daily_spending: List[DailySpending]
    category_breakdown: List[CategorySpending]
    top_merchants: List[MerchantSpending]
    spending_change_percent: float
    transaction_count: int
    avg_daily_spend: float


@dataclass
class Result:
    """Success/error envelope returned to interactive callers"""
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, message: str) -> "Result":
        return cls(error=message)
