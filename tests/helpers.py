import itertools
from typing import Dict, List, Optional

from config.settings import HubSettings


SECRET = 'test-secret'


def make_settings(**overrides) -> HubSettings:
    values = dict(
        sync_secret=SECRET,
        rate_limit_enabled=False,
        stream_interval_s=0.05,
    )
    values.update(overrides)
    return HubSettings(**values)


def ticking_clock(start: int = 0):
    counter = itertools.count(start)
    return lambda: f"2024-01-01T00:00:{next(counter):02d}.000Z"


def history(states: List[Optional[str]], start_value: float = 300.0) -> List[Dict]:
    rows = []
    for day, state in enumerate(states, start=1):
        row = {
            'timestamp': f"2024-01-{day:02d}T00:00:00Z",
            'portfolio_value': start_value + day,
        }
        if state is not None:
            row['current_state'] = state
        rows.append(row)
    return rows


def sync_payload(state: str = 'IGNITION', states: Optional[List[str]] = None, trades: int = 1) -> Dict:
    return {
        'system': {'version': '2.0.0', 'mode': 'DRY_RUN'},
        'stats': {
            'current_state': state,
            'portfolio_value': 312.5,
            'total_return_pct': 4.17,
            'btc_price': 64250.0,
            'fear_greed': 71,
            'days_in_state': 3,
        },
        'history': history(states if states is not None else ['WAITING', state]),
        'trades': [
            {
                'timestamp': f"2024-01-0{i + 1}T12:00:00Z",
                'symbol': 'BTC/USDT',
                'side': 'buy' if i % 2 == 0 else 'sell',
                'price': 64000.0 + i,
                'value': 50.0,
                'amount': 0.00078,
            }
            for i in range(trades)
        ],
    }
