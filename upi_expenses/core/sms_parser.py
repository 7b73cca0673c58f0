"""
SMS Parser for UPI payment notifications

Each payment app words its messages differently, so every vendor gets an
Extractor subclass that only carries data (sender token, keywords, regexes).
The PatternRegistry tries extractors in priority order and stops at the first
one that returns a result.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from .models import Direction, ParseResult, Transaction, UNKNOWN_RECIPIENT, to_money

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.MULTILINE

# Reference ids carry at least one digit; "Ref No 123" and "Ref #123" both yield "123".
_REF_NO = r'\s*(?:no\b\.?|number\b)?\s*[#:]?\s*'
_REF_ID = r'([A-Za-z0-9]*\d[A-Za-z0-9]*)'


def name_pattern(lead: str, stops: Tuple[str, ...]) -> re.Pattern:
    """Name after `lead`, up to a stop word, a "Ref" clause, a sentence break or end of line"""
    words = '|'.join(stops + ('ref',))
    return re.compile(lead + r'([^\n]+?)(?:\s+(?:' + words + r')\b|\.\s|[.,]?$)', _FLAGS)


# Credits usually name the payer; tried before the vendor's own patterns.
FROM_PATTERN = name_pattern(r'\bfrom\s+', ('on', 'at', 'via', 'using'))


class Extractor:
    """Base class for vendor extractors"""

    vendor: str = "UPI"
    priority: int = 50  # lower runs first
    sender_token: Optional[str] = None
    sent_keywords: Tuple[str, ...] = ('debited', 'sent', 'paid')
    received_keywords: Tuple[str, ...] = ('credited', 'received')
    amount_pattern: re.Pattern = re.compile(r'Rs\.?\s*([\d,]+\.?\d*)', _FLAGS)
    recipient_patterns: Tuple[re.Pattern, ...] = ()
    reference_pattern: Optional[re.Pattern] = None

    def matches(self, sender: str, body: str) -> bool:
        if not self.sender_token:
            return False
        return self.sender_token in (sender or '').lower()

    def parse_direction(self, body: str) -> Optional[Direction]:
        text = body.lower()
        if any(word in text for word in self.sent_keywords):
            return Direction.SENT
        if any(word in text for word in self.received_keywords):
            return Direction.RECEIVED
        return None

    def parse_amount(self, body: str) -> Optional[Decimal]:
        """Currency-prefixed amount rounded to paise, None if missing or not storable"""
        match = self.amount_pattern.search(body)
        if not match:
            return None

        cleaned = match.group(1).replace(',', '').rstrip('.').strip()
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None

        return to_money(amount)

    def parse_recipient(self, body: str, direction: Direction) -> str:
        patterns = list(self.recipient_patterns)
        if direction == Direction.RECEIVED:
            patterns.insert(0, FROM_PATTERN)

        for pattern in patterns:
            match = pattern.search(body)
            if match:
                recipient = match.group(1).strip().rstrip('.,').strip()
                if recipient:
                    return recipient
        return UNKNOWN_RECIPIENT

    def parse_reference(self, body: str) -> Optional[str]:
        if self.reference_pattern is None:
            return None
        match = self.reference_pattern.search(body)
        return match.group(1) if match else None

    def extract(self, body: str) -> Optional[ParseResult]:
        """
        Pull a ParseResult out of the message body

        Returns None when the direction or amount can't be determined.
        """
        if not body:
            return None

        direction = self.parse_direction(body)
        if direction is None:
            return None

        amount = self.parse_amount(body)
        if amount is None:
            return None

        return ParseResult(
            amount=amount,
            recipient=self.parse_recipient(body, direction),
            direction=direction,
            vendor=self.vendor,
            reference_id=self.parse_reference(body),
        )

    def __repr__(self):
        return f"{self.__class__.__name__}(vendor={self.vendor!r}, priority={self.priority})"


class GooglePayExtractor(Extractor):
    vendor = "Google Pay"
    priority = 10
    sender_token = "gpay"
    sent_keywords = ('debited',)
    received_keywords = ('credited',)
    recipient_patterns = (
        name_pattern(r'\bto\s+', ('on', 'at', 'via')),
    )
    reference_pattern = re.compile(r'\bref\b\.?' + _REF_NO + _REF_ID, _FLAGS)


class PhonePeExtractor(Extractor):
    vendor = "PhonePe"
    priority = 20
    sender_token = "phonepe"
    sent_keywords = ('debited',)
    received_keywords = ('credited',)
    recipient_patterns = (
        name_pattern(r'\bto\s+', ('via', 'on')),
    )
    reference_pattern = re.compile(r'\btransaction\s+id[:\s]*' + _REF_ID, _FLAGS)


class PaytmExtractor(Extractor):
    vendor = "Paytm"
    priority = 30
    sender_token = "paytm"
    sent_keywords = ('paid', 'debited')
    received_keywords = ('received', 'credited')
    amount_pattern = re.compile(r'INR\s*([\d,]+\.?\d*)', _FLAGS)
    recipient_patterns = (
        name_pattern(r'\bto\s+', ('using', 'via')),
    )
    reference_pattern = re.compile(r'\border\s+id[:\s]*' + _REF_ID, _FLAGS)


class BhimExtractor(Extractor):
    vendor = "BHIM"
    priority = 40
    sender_token = "bhim"
    sent_keywords = ('debited',)
    received_keywords = ('credited',)
    recipient_patterns = (
        name_pattern(r'\bbeneficiary[:\s]*', ('via',)),
    )
    reference_pattern = re.compile(r'\bref\b\.?' + _REF_NO + _REF_ID, _FLAGS)


class GenericUpiExtractor(Extractor):
    """Fallback for any sender whose message mentions UPI"""

    vendor = "UPI"
    priority = 100
    amount_pattern = re.compile(r'(?:Rs|INR)\.?\s*([\d,]+\.?\d*)', _FLAGS)
    recipient_patterns = (
        name_pattern(r'\bto\s+', ('via', 'using', 'on')),
    )
    reference_pattern = re.compile(
        r'\b(?:ref|transaction)\b\.?(?:\s*id\b)?' + _REF_NO + _REF_ID, _FLAGS
    )

    def matches(self, sender: str, body: str) -> bool:
        return 'upi' in (body or '').lower()


class PatternRegistry:
    """
    Ordered collection of extractors

    Extractors run by ascending priority; ties keep registration order.
    """

    def __init__(self, extractors: Iterable[Extractor]):
        self.extractors: List[Extractor] = sorted(extractors, key=lambda e: e.priority)
        self.stats = {
            'matches': 0,
            'no_match': 0,
            'by_vendor': {},
        }

    def extract(self, sender: str, body: str) -> Optional[ParseResult]:
        for extractor in self.extractors:
            if not extractor.matches(sender, body):
                continue
            result = extractor.extract(body)
            if result is not None:
                self.stats['matches'] += 1
                self.stats['by_vendor'][result.vendor] = \
                    self.stats['by_vendor'].get(result.vendor, 0) + 1
                return result

        self.stats['no_match'] += 1
        return None


def default_registry() -> PatternRegistry:
    return PatternRegistry([
        GooglePayExtractor(),
        PhonePeExtractor(),
        PaytmExtractor(),
        BhimExtractor(),
        GenericUpiExtractor(),
    ])


class TextTransactionParser:
    """Turns a raw message into a categorized Transaction"""

    def __init__(self, registry: PatternRegistry, categorizer):
        self.registry = registry
        self.categorizer = categorizer

    def parse(self, body: str, sender: str, timestamp: int) -> Optional[Transaction]:
        """
        Parse one message

        Args:
            body: Message text
            sender: Sender address or short code
            timestamp: Receipt time in epoch millis

        Returns:
            Transaction ready to store, or None if no extractor matched
        """
        result = self.registry.extract(sender, body)
        if result is None:
            logger.debug("No extractor matched message from %s", sender)
            return None

        category = self.categorizer.categorize(result.recipient, sender)

        return Transaction(
            amount=result.amount,
            recipient_name=result.recipient,
            direction=result.direction,
            timestamp=timestamp,
            category=category,
            raw_text=body,
            source_app=result.vendor,
            reference_id=result.reference_id,
            is_parsed=True,
        )
