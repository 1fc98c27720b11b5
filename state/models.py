"""Snapshot data model shared by the hub and the dashboard client.

Every entity is a frozen dataclass whose optional fields default to the
documented zero values. Payloads are normalized once, at ``from_dict``; fields
the model does not name are kept in ``extra`` and written back out by
``to_dict`` so producer-side additions reach readers unchanged.
"""
from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


PLACEHOLDER_STATE = 'WAITING'
DEFAULT_VERSION = '2.0.0'

SEQUENCE_FIELDS = ('history', 'trades', 'transitions', 'reports')


class Mode(Enum):
    LIVE = "LIVE"
    DRY_RUN = "DRY_RUN"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> 'Mode':
        if isinstance(value, Mode):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    # NaN and infinities cannot be served back as JSON
    return number if math.isfinite(number) else default


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    number = to_float(value)
    if number is None:
        return default
    return int(number)


def to_index(value: Any, low: int = 0, high: int = 100) -> Optional[int]:
    """Integer index within ``[low, high]``; anything else reads as unknown."""
    number = to_int(value)
    if number is None or not low <= number <= high:
        return None
    return number


def to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


def _extra(raw: Mapping[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    known_keys = set(known)
    return {key: copy.deepcopy(value) for key, value in raw.items() if key not in known_keys}


def _mappings(raw: Any) -> List[Mapping[str, Any]]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [item for item in raw if isinstance(item, Mapping)]


@dataclass(frozen=True)
class SystemInfo:
    version: str = DEFAULT_VERSION
    mode: Mode = Mode.UNKNOWN
    uptime: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ('version', 'mode', 'uptime')

    @classmethod
    def from_dict(cls, raw: Any) -> 'SystemInfo':
        if not isinstance(raw, Mapping):
            return cls()
        return cls(
            version=to_str(raw.get('version')) or DEFAULT_VERSION,
            mode=Mode.parse(raw.get('mode')),
            uptime=to_float(raw.get('uptime'), 0.0),
            extra=_extra(raw, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out.update({'version': self.version, 'mode': self.mode.value, 'uptime': self.uptime})
        return out


@dataclass(frozen=True)
class Stats:
    current_state: str = PLACEHOLDER_STATE
    portfolio_value: float = 0.0
    total_return: float = 0.0
    total_return_pct: float = 0.0
    btc_price: Optional[float] = None
    fear_greed: Optional[int] = None
    days_in_state: int = 0
    days_running: int = 0
    timestamp: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = (
        'current_state', 'portfolio_value', 'total_return', 'total_return_pct',
        'btc_price', 'fear_greed', 'days_in_state', 'days_running', 'timestamp',
    )

    @classmethod
    def from_dict(cls, raw: Any) -> 'Stats':
        if not isinstance(raw, Mapping):
            return cls()
        return cls(
            current_state=to_str(raw.get('current_state')) or PLACEHOLDER_STATE,
            portfolio_value=to_float(raw.get('portfolio_value'), 0.0),
            total_return=to_float(raw.get('total_return'), 0.0),
            total_return_pct=to_float(raw.get('total_return_pct'), 0.0),
            btc_price=to_float(raw.get('btc_price')),
            fear_greed=to_index(raw.get('fear_greed')),
            days_in_state=max(to_int(raw.get('days_in_state'), 0), 0),
            days_running=max(to_int(raw.get('days_running'), 0), 0),
            timestamp=raw.get('timestamp'),
            extra=_extra(raw, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out.update({
            'current_state': self.current_state,
            'portfolio_value': self.portfolio_value,
            'total_return': self.total_return,
            'total_return_pct': self.total_return_pct,
            'btc_price': self.btc_price,
            'fear_greed': self.fear_greed,
            'days_in_state': self.days_in_state,
            'days_running': self.days_running,
            'timestamp': self.timestamp,
        })
        return out


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: Any = None
    portfolio_value: float = 0.0
    current_state: Optional[str] = None
    btc_price: Optional[float] = None
    fear_greed: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ('timestamp', 'portfolio_value', 'current_state', 'btc_price', 'fear_greed')

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'HistoryEntry':
        return cls(
            timestamp=raw.get('timestamp'),
            portfolio_value=to_float(raw.get('portfolio_value'), 0.0),
            current_state=to_str(raw.get('current_state')),
            btc_price=to_float(raw.get('btc_price')),
            fear_greed=to_index(raw.get('fear_greed')),
            extra=_extra(raw, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out.update({
            'timestamp': self.timestamp,
            'portfolio_value': self.portfolio_value,
            'current_state': self.current_state,
        })
        if self.btc_price is not None:
            out['btc_price'] = self.btc_price
        if self.fear_greed is not None:
            out['fear_greed'] = self.fear_greed
        return out


@dataclass(frozen=True)
class Trade:
    timestamp: Any = None
    symbol: str = ''
    side: str = ''
    price: float = 0.0
    value: float = 0.0
    amount: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ('timestamp', 'symbol', 'side', 'price', 'value', 'amount')

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'Trade':
        return cls(
            timestamp=raw.get('timestamp'),
            symbol=to_str(raw.get('symbol')) or '',
            side=(to_str(raw.get('side')) or '').lower(),
            price=to_float(raw.get('price'), 0.0),
            value=to_float(raw.get('value'), 0.0),
            amount=to_float(raw.get('amount')),
            extra=_extra(raw, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out.update({
            'timestamp': self.timestamp,
            'symbol': self.symbol,
            'side': self.side,
            'price': self.price,
            'value': self.value,
        })
        if self.amount is not None:
            out['amount'] = self.amount
        return out


@dataclass(frozen=True)
class Snapshot:
    last_updated: Optional[str] = None
    system: SystemInfo = field(default_factory=SystemInfo)
    stats: Stats = field(default_factory=Stats)
    history: Tuple[HistoryEntry, ...] = ()
    trades: Tuple[Trade, ...] = ()
    transitions: Tuple[Dict[str, Any], ...] = ()
    reports: Tuple[Dict[str, Any], ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ('lastUpdated', 'system', 'stats') + SEQUENCE_FIELDS

    @classmethod
    def placeholder(cls) -> 'Snapshot':
        return cls()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> 'Snapshot':
        return cls(
            last_updated=to_str(payload.get('lastUpdated')),
            system=SystemInfo.from_dict(payload.get('system')),
            stats=Stats.from_dict(payload.get('stats')),
            history=tuple(HistoryEntry.from_dict(item) for item in _mappings(payload.get('history'))),
            trades=tuple(Trade.from_dict(item) for item in _mappings(payload.get('trades'))),
            transitions=tuple(copy.deepcopy(dict(item)) for item in _mappings(payload.get('transitions'))),
            reports=tuple(copy.deepcopy(dict(item)) for item in _mappings(payload.get('reports'))),
            extra=_extra(payload, cls._KEYS),
        )

    def stamped(self, received_at: str) -> 'Snapshot':
        return replace(self, last_updated=received_at)

    def sequence(self, name: str) -> tuple:
        if name not in SEQUENCE_FIELDS:
            raise KeyError(f"Unknown snapshot sequence '{name}'")
        return getattr(self, name)

    def sequence_dicts(self, name: str, items: Optional[Iterable[Any]] = None) -> List[Dict[str, Any]]:
        source = self.sequence(name) if items is None else items
        return [item.to_dict() if hasattr(item, 'to_dict') else copy.deepcopy(item) for item in source]

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.extra)
        out.update({
            'lastUpdated': self.last_updated,
            'system': self.system.to_dict(),
            'stats': self.stats.to_dict(),
        })
        for name in SEQUENCE_FIELDS:
            out[name] = self.sequence_dicts(name)
        return out
