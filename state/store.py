import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from state.models import SEQUENCE_FIELDS, Snapshot


logger = logging.getLogger(__name__)

DEFAULT_LIMITS: Dict[str, int] = {
    'history': 100,
    'transitions': 10,
    'trades': 20,
    'reports': 30,
}


def utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def resolve_limit(field_name: str, limit: Any) -> int:
    """Parse a requested slice length, falling back to the field default."""
    default = DEFAULT_LIMITS[field_name]
    if limit is None or isinstance(limit, bool):
        return default
    try:
        value = int(limit)
    except (TypeError, ValueError):
        try:
            value = int(float(limit))
        except (TypeError, ValueError, OverflowError):
            return default
    return value if value > 0 else default


class StateStore:
    """Holds the single current snapshot.

    The snapshot is immutable, so ``replace`` is one reference swap and every
    ``read`` observes either the whole previous sync or the whole new one.
    Sequences are replaced wholesale on each sync; nothing is merged.
    """

    def __init__(self, retention: Optional[Dict[str, int]] = None,
                 clock: Callable[[], str] = utc_now_iso):
        self._snapshot = Snapshot.placeholder()
        self._lock = threading.Lock()
        self._clock = clock
        self._listeners: List[Callable[[Snapshot], None]] = []
        self.retention = {name: int(value) for name, value in (retention or {}).items() if value}

    def read(self) -> Snapshot:
        return self._snapshot

    def replace(self, snapshot: Snapshot) -> Snapshot:
        stored = self._apply_retention(snapshot).stamped(self._clock())
        with self._lock:
            self._snapshot = stored
        for listener in list(self._listeners):
            try:
                listener(stored)
            except Exception as exc:
                logger.error("Snapshot listener failed: %s", exc)
        return stored

    def reset(self) -> None:
        with self._lock:
            self._snapshot = Snapshot.placeholder()

    def read_slice(self, field_name: str, limit: Any = None) -> List[Dict[str, Any]]:
        if field_name not in SEQUENCE_FIELDS:
            raise KeyError(f"Unknown snapshot sequence '{field_name}'")
        count = resolve_limit(field_name, limit)
        snapshot = self._snapshot
        items = snapshot.sequence(field_name)
        return snapshot.sequence_dicts(field_name, items[-count:])

    def cache_size(self) -> Dict[str, int]:
        snapshot = self._snapshot
        return {
            'history': len(snapshot.history),
            'transitions': len(snapshot.transitions),
            'trades': len(snapshot.trades),
        }

    def subscribe(self, listener: Callable[[Snapshot], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[Snapshot], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _apply_retention(self, snapshot: Snapshot) -> Snapshot:
        changes = {}
        for name, cap in self.retention.items():
            field_name = name[len('max_'):] if name.startswith('max_') else name
            if field_name not in SEQUENCE_FIELDS:
                continue
            items = snapshot.sequence(field_name)
            if len(items) <= cap:
                continue
            # trades arrive most-recent-first; everything else is ascending
            changes[field_name] = items[:cap] if field_name == 'trades' else items[-cap:]
            logger.info("Retention trimmed %s from %d to %d entries", field_name, len(items), cap)
        if not changes:
            return snapshot
        return replace(snapshot, **changes)
