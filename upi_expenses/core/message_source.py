"""
Message sources for historical import

Reads exported SMS inboxes (CSV or JSON lines) into Message records.
"""
import csv
import json
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

DAY_MS = 24 * 60 * 60 * 1000

SENDER_FIELDS = ('sender', 'address')
BODY_FIELDS = ('body', 'message', 'text')
TIMESTAMP_FIELDS = ('timestamp', 'date')

DATE_FORMATS = [
    '%Y-%m-%d %H:%M:%S',   # 2025-01-15 14:30:00
    '%Y-%m-%dT%H:%M:%S',   # 2025-01-15T14:30:00
    '%Y-%m-%d',            # 2025-01-15
    '%d-%b-%Y %H:%M',      # 15-Jan-2025 14:30
    '%d/%m/%Y %H:%M',      # 15/01/2025 14:30
    '%d/%m/%Y',            # 15/01/2025
]


@dataclass
class Message:
    sender: str
    body: str
    timestamp: int  # epoch millis


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp(value) -> int:
    """
    Convert an exported timestamp to epoch millis

    Accepts epoch millis, epoch seconds, or one of DATE_FORMATS (local time).
    """
    if isinstance(value, (int, float)):
        number = int(value)
    else:
        text = str(value or '').strip()
        if not text:
            raise ValueError("Missing timestamp")
        if text.isdigit():
            number = int(text)
        else:
            for fmt in DATE_FORMATS:
                try:
                    return int(datetime.strptime(text, fmt).timestamp() * 1000)
                except ValueError:
                    continue
            raise ValueError(f"Could not parse timestamp: {text}")

    # Ten-digit values are seconds
    if number < 10 ** 11:
        number *= 1000
    return number


def _pick(record: Dict, names) -> Optional[str]:
    for name in names:
        if name in record and record[name] is not None:
            return record[name]
    return None


def _to_message(record: Dict, line_no: int) -> Message:
    sender = _pick(record, SENDER_FIELDS)
    body = _pick(record, BODY_FIELDS)
    raw_ts = _pick(record, TIMESTAMP_FIELDS)
    if body is None or raw_ts is None:
        raise ValueError(f"Record {line_no}: needs body and timestamp fields")

    return Message(sender=str(sender or '').strip(), body=str(body), timestamp=parse_timestamp(raw_ts))


def load_messages(path) -> List[Message]:
    """
    Load an exported inbox

    .jsonl / .json files hold one JSON object per line, anything else is read
    as CSV with a header row (sender|address, body, timestamp|date).
    """
    path = Path(path)
    messages = []

    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() in ('.jsonl', '.json'):
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                messages.append(_to_message(json.loads(line), line_no))
        else:
            reader = csv.DictReader(f)
            for line_no, row in enumerate(reader, 2):
                row = {(k or '').strip().lower(): v for k, v in row.items()}
                messages.append(_to_message(row, line_no))

    return messages


def select_messages(
    messages: Iterable[Message],
    days: Optional[int] = None,
    now: Optional[int] = None,
) -> List[Message]:
    """
    Apply an optional age cutoff and order newest first

    Args:
        days: Keep only messages from the last N days (None keeps all)
        now: Reference time in epoch millis (default: current time)
    """
    selected = list(messages)
    if days is not None:
        cutoff = (now if now is not None else now_ms()) - days * DAY_MS
        selected = [m for m in selected if m.timestamp >= cutoff]

    return sorted(selected, key=lambda m: m.timestamp, reverse=True)
