import csv
import io
from pathlib import Path
from typing import Any, Union

from state.models import Snapshot


HISTORY_HEADER = ['Timestamp', 'State', 'Portfolio Value', 'BTC Price', 'Fear & Greed']
TRADES_LABEL = 'Trades'
TRADES_HEADER = ['Timestamp', 'Symbol', 'Side', 'Price', 'Value']


def _cell(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _number(value: Any) -> str:
    return _cell(value if value is not None else 0)


def generate_csv(snapshot: Snapshot) -> str:
    """Flatten history then trades into one CSV document.

    Sections are separated by a blank line and the trades section carries a
    label row. Empty sequences produce header-only sections.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')

    writer.writerow(HISTORY_HEADER)
    for entry in snapshot.history:
        writer.writerow([
            _cell(entry.timestamp),
            _cell(entry.current_state),
            _number(entry.portfolio_value),
            _number(entry.btc_price),
            _number(entry.fear_greed),
        ])

    buffer.write('\n')
    writer.writerow([TRADES_LABEL])
    writer.writerow(TRADES_HEADER)
    for trade in snapshot.trades:
        writer.writerow([
            _cell(trade.timestamp),
            _cell(trade.symbol),
            _cell(trade.side),
            _number(trade.price),
            _number(trade.value),
        ])
    return buffer.getvalue()


def write_csv(snapshot: Snapshot, path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(generate_csv(snapshot), encoding='utf-8')
    return target
