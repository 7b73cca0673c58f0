"""
Runtime settings

Values come from the environment, with a local .env file loaded first.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    """Tunables for ingestion, aggregation and the CLIs"""
    log_level: str = 'INFO'
    log_json: bool = False
    progress_every: int = 10
    import_default_days: Optional[int] = None
    week_start: int = 0  # 0 = Monday ... 6 = Sunday

    @classmethod
    def from_env(cls) -> "Settings":
        week_start = _int_env('WEEK_START', 0)
        if not 0 <= week_start <= 6:
            raise ValueError(f"WEEK_START must be between 0 and 6, got {week_start}")

        progress_every = _int_env('IMPORT_PROGRESS_EVERY', 10)
        if progress_every < 1:
            raise ValueError("IMPORT_PROGRESS_EVERY must be at least 1")

        return cls(
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_json=os.getenv('LOG_FORMAT', 'plain').lower() == 'json',
            progress_every=progress_every,
            import_default_days=_int_env('IMPORT_DEFAULT_DAYS', None),
            week_start=week_start,
        )
