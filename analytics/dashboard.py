"""Presentation-layer view of a snapshot, as rendered by the dashboard client.

Everything here is a pure function of the snapshot: the same cached snapshot
always yields the same view, so an offline client simply re-derives from the
last payload it saw.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from analytics.formatting import (
    display_value,
    format_amount,
    format_money,
    format_pct,
    format_relative_time,
)
from analytics.histogram import state_occupancy
from analytics.performance import days_running, portfolio_series, recent_trades, time_in_market
from analytics.transitions import count_transitions, transition_timeline
from config.settings import DEFAULT_ACTIVE_STATES
from state.models import Mode, Snapshot, Trade


def mode_badge(mode: Mode) -> str:
    return '● LIVE' if mode is Mode.LIVE else 'DRY RUN'


def _trade_row(trade: Trade, now: Optional[datetime]) -> Dict[str, Any]:
    return {
        'symbol': trade.symbol,
        'side': trade.side,
        'price': format_money(trade.price),
        'value': format_money(trade.value),
        'amount': format_amount(trade.amount),
        'when': format_relative_time(trade.timestamp, now),
    }


def build_dashboard_view(
    snapshot: Snapshot,
    offline: bool = False,
    active_states: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    stats = snapshot.stats
    states = list(active_states) if active_states is not None else DEFAULT_ACTIVE_STATES
    if offline:
        updated = 'Offline - showing cached data'
    elif snapshot.last_updated:
        updated = f"Updated {format_relative_time(snapshot.last_updated, now)}"
    else:
        updated = 'Waiting for first sync'

    return {
        'offline': offline,
        'has_data': snapshot.last_updated is not None,
        'mode_badge': mode_badge(snapshot.system.mode),
        'last_update': updated,
        'current_state': stats.current_state,
        'days_in_state': stats.days_in_state or 0,
        'portfolio_value': format_money(stats.portfolio_value),
        'total_return': format_pct(stats.total_return_pct),
        'return_positive': (stats.total_return_pct or 0.0) >= 0,
        'btc_price': format_money(stats.btc_price),
        'fear_greed': display_value(stats.fear_greed),
        'summary': {
            'total_transitions': count_transitions(snapshot.history),
            'total_trades': len(snapshot.trades),
            'days_running': days_running(snapshot.history),
        },
        'timeline': transition_timeline(snapshot.history),
        'distribution': [share.to_dict() for share in state_occupancy(snapshot.history)],
        'time_in_market_pct': time_in_market(snapshot.history, states),
        'chart': portfolio_series(snapshot.history),
        'recent_activity': [_trade_row(trade, now) for trade in recent_trades(snapshot.trades)],
    }
