"""
Time helpers shared by the attempt and dashboard services
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes coming back from storage as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60


def start_of_day(value: datetime) -> datetime:
    value = ensure_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def timeframe_start(timeframe: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Resolve a named timeframe into its lower bound

    Args:
        timeframe: "week", "month", "year", "all" or None
        now: Reference time

    Returns:
        Lower bound datetime, or None for no bound
    """
    days = {"week": 7, "month": 30, "year": 365}.get(timeframe or "all")
    if days is None:
        return None
    return now - timedelta(days=days)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like Math.round: halves go up, not to even"""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def percent(part: float, whole: float) -> int:
    if not whole:
        return 0
    return int(round_half_up(part / whole * 100))
