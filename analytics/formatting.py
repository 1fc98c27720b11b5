from datetime import datetime, timezone
from typing import Any, Optional

from analytics.performance import parse_timestamp


UNKNOWN_DISPLAY = '—'


def display_value(value: Any) -> str:
    if value is None or value == '':
        return UNKNOWN_DISPLAY
    return str(value)


def format_money(value: Optional[float]) -> str:
    return f"${(value or 0.0):,.2f}"


def format_pct(value: Optional[float], places: int = 2) -> str:
    value = value or 0.0
    sign = '+' if value >= 0 else ''
    return f"{sign}{value:.{places}f}%"


def format_amount(value: Optional[float]) -> str:
    if value is None:
        return UNKNOWN_DISPLAY
    return f"{value:.6f}"


def format_relative_time(value: Any, now: Optional[datetime] = None) -> str:
    ts = parse_timestamp(value)
    if ts is None:
        return UNKNOWN_DISPLAY
    now = now or datetime.now(timezone.utc)
    diff = int((now - ts).total_seconds())
    if diff < 60:
        return 'just now'
    if diff < 3600:
        return f"{diff // 60}m ago"
    if diff < 86400:
        return f"{diff // 3600}h ago"
    return f"{diff // 86400}d ago"
