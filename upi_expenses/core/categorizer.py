"""
Keyword Categorizer

Maps a recipient name to a spending category using the ordered rule set
held by the store. Rules are read fresh on every call because users can
add, delete or reset them while the app is running.
"""
import logging
import re
from typing import Iterable, List

from .models import CategoryRule, DEFAULT_CATEGORY, DEFAULT_ICON

logger = logging.getLogger(__name__)

TRANSFERS_CATEGORY = "Transfers"
TRANSFER_SENDER_HINTS = ('bank', 'wallet')

# (keyword, category, icon), in precedence order
DEFAULT_RULES = [
    # Shopping
    ('amazon', 'Shopping', 'shopping_bag'),
    ('flipkart', 'Shopping', 'shopping_bag'),
    ('myntra', 'Shopping', 'shopping_bag'),
    ('ajio', 'Shopping', 'shopping_bag'),
    ('tata cliq', 'Shopping', 'shopping_bag'),
    # Food
    ('zomato', 'Food & Dining', 'restaurant'),
    ('swiggy', 'Food & Dining', 'restaurant'),
    ('domino', 'Food & Dining', 'restaurant'),
    ('pizza hut', 'Food & Dining', 'restaurant'),
    ('kfc', 'Food & Dining', 'restaurant'),
    # Transport
    ('uber', 'Transport', 'directions_car'),
    ('ola', 'Transport', 'directions_car'),
    ('metro', 'Transport', 'train'),
    ('irctc', 'Transport', 'train'),
    # Utilities
    ('electricity', 'Utilities', 'bolt'),
    ('broadband', 'Utilities', 'wifi'),
    ('gas', 'Utilities', 'local_fire_department'),
    ('water', 'Utilities', 'water_drop'),
    # Entertainment
    ('netflix', 'Entertainment', 'movie'),
    ('spotify', 'Entertainment', 'music_note'),
    ('bookmyshow', 'Entertainment', 'theater_comedy'),
    ('prime', 'Entertainment', 'play_circle'),
    # Bills
    ('mobile', 'Bills & Recharges', 'phone_android'),
    ('dth', 'Bills & Recharges', 'tv'),
    ('recharge', 'Bills & Recharges', 'payments'),
    # Transfers
    ('bank', 'Transfers', 'account_balance'),
    ('wallet', 'Transfers', 'account_balance_wallet'),
    ('paytm wallet', 'Transfers', 'account_balance_wallet'),
]

CATEGORY_ICONS = {
    'shopping': 'shopping_bag',
    'food & dining': 'restaurant',
    'transport': 'directions_car',
    'utilities': 'bolt',
    'entertainment': 'movie',
    'bills & recharges': 'phone_android',
    'transfers': 'account_balance',
    'upi': 'payment',
}


def default_rules() -> List[CategoryRule]:
    """Built-in seed rules, used on first run and on reset"""
    return [
        CategoryRule(keyword=keyword, category=category, icon=icon, is_custom=False)
        for keyword, category, icon in DEFAULT_RULES
    ]


def category_icon(category: str) -> str:
    return CATEGORY_ICONS.get((category or '').lower(), DEFAULT_ICON)


def suggest_keyword(recipient_name: str) -> str:
    """
    Propose a rule keyword for a recipient

    First alphanumeric token of 3+ characters, else the first 10 characters
    of the lowercased name.
    """
    lowered = (recipient_name or '').lower()
    cleaned = re.sub(r'[^a-z0-9\s]', '', lowered)
    for token in cleaned.split():
        if len(token) >= 3:
            return token
    return lowered.strip()[:10]


def seed_default_rules(store) -> int:
    """
    Insert the default rules when the store has none

    Returns:
        Number of rules inserted (0 if rules already existed)
    """
    if store.count_rules() > 0:
        return 0

    rules = default_rules()
    store.insert_rules(rules)
    logger.info("Seeded %d default category rules", len(rules))
    return len(rules)


class StaticRuleSource:
    """Fixed rule list with the same list_rules() shape as a store"""

    def __init__(self, rules: Iterable[CategoryRule]):
        self._rules = list(rules)

    def list_rules(self) -> List[CategoryRule]:
        return list(self._rules)


class Categorizer:
    """
    Assigns categories from keyword rules

    rule_source is anything with list_rules(), usually the store.
    """

    def __init__(self, rule_source):
        self.rule_source = rule_source

    def categorize(self, recipient: str, sender: str = '') -> str:
        recipient_lower = (recipient or '').lower()

        for rule in self.rule_source.list_rules():
            keyword = (rule.keyword or '').strip().lower()
            if keyword and keyword in recipient_lower:
                return rule.category

        sender_lower = (sender or '').lower()
        if any(hint in sender_lower for hint in TRANSFER_SENDER_HINTS):
            return TRANSFERS_CATEGORY

        return DEFAULT_CATEGORY

    def suggest_keyword(self, recipient_name: str) -> str:
        return suggest_keyword(recipient_name)
