from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil import parser as date_parser

from analytics.histogram import percent
from state.models import HistoryEntry, Trade


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort timestamp parse: ISO strings, epoch seconds or epoch millis.

    Naive datetimes are taken as UTC. Returns None for anything unparsable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def time_in_market(history: Optional[Sequence[HistoryEntry]], active_states: Iterable[str]) -> float:
    entries = list(history or ())
    if not entries:
        return 0.0
    active = set(active_states)
    in_market = sum(1 for entry in entries if entry.current_state in active)
    return percent(in_market, len(entries))


def days_running(history: Optional[Sequence[HistoryEntry]]) -> int:
    entries = list(history or ())
    if not entries:
        return 0
    first = parse_timestamp(entries[0].timestamp)
    last = parse_timestamp(entries[-1].timestamp)
    if first is None or last is None:
        return 0
    return max(int((last - first).total_seconds() // 86400), 0)


def portfolio_series(history: Optional[Sequence[HistoryEntry]]) -> Dict[str, List]:
    """Chart-ready labels (ISO dates) and portfolio values."""
    labels: List[str] = []
    values: List[float] = []
    for entry in history or ():
        ts = parse_timestamp(entry.timestamp)
        labels.append(ts.date().isoformat() if ts else '')
        values.append(entry.portfolio_value or 0.0)
    return {'labels': labels, 'values': values}


def recent_trades(trades: Optional[Sequence[Trade]], count: int = 5) -> List[Trade]:
    return list(trades or ())[:max(count, 0)]
