from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from state.models import HistoryEntry


def percent(part: float, whole: float, places: int = 1) -> float:
    """``part / whole`` as a percentage rounded half-up; 0.0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    raw = Decimal(str(part * 100.0 / whole))
    quantum = Decimal(1).scaleb(-places)
    return float(raw.quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class StateShare:
    state: str
    count: int
    pct: float

    def to_dict(self) -> Dict:
        return {'state': self.state, 'count': self.count, 'pct': self.pct}


class StateHistogram:
    """Counts of history samples per state, in first-seen order."""

    def __init__(self):
        self.counts: Dict[str, int] = {}
        self.total = 0

    def add(self, state: Optional[str]):
        if not state:
            return
        self.counts[state] = self.counts.get(state, 0) + 1
        self.total += 1

    def shares(self) -> List[StateShare]:
        # sorted() is stable, so equal counts keep first-seen order
        ranked = sorted(self.counts.items(), key=lambda item: item[1], reverse=True)
        return [StateShare(state, count, percent(count, self.total)) for state, count in ranked]


def state_occupancy(history: Optional[Iterable[HistoryEntry]]) -> List[StateShare]:
    histogram = StateHistogram()
    for entry in history or ():
        histogram.add(entry.current_state)
    return histogram.shares()
