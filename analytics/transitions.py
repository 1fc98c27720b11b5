from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from state.models import HistoryEntry


@dataclass(frozen=True)
class Transition:
    from_state: str
    to_state: str
    timestamp: Any
    portfolio_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'from': self.from_state,
            'to': self.to_state,
            'timestamp': self.timestamp,
            'portfolioValue': self.portfolio_value,
        }


def iter_transitions(history: Optional[Iterable[HistoryEntry]]) -> Iterator[Transition]:
    """Yield a transition wherever the state differs from the last distinct one.

    Entries without a state are skipped; runs of the same state collapse. The
    first observed state opens the sequence and is not itself a transition.
    """
    last_state: Optional[str] = None
    for entry in history or ():
        state = entry.current_state
        if not state or state == last_state:
            continue
        if last_state is not None:
            yield Transition(
                from_state=last_state,
                to_state=state,
                timestamp=entry.timestamp,
                portfolio_value=entry.portfolio_value or 0.0,
            )
        last_state = state


def extract_transitions(history: Optional[Iterable[HistoryEntry]]) -> List[Transition]:
    return list(iter_transitions(history))


def count_transitions(history: Optional[Iterable[HistoryEntry]]) -> int:
    changes = 0
    last_state: Optional[str] = None
    for entry in history or ():
        if entry.current_state and entry.current_state != last_state:
            changes += 1
            last_state = entry.current_state
    return max(0, changes - 1)


def transition_timeline(history: Optional[Iterable[HistoryEntry]]) -> List[Dict[str, Any]]:
    """Transitions newest first, as rendered by the states view."""
    return [t.to_dict() for t in reversed(extract_transitions(history))]
