"""Typed view of the hub's configuration sections."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config_loader import Config


DEFAULT_ACTIVE_STATES = ['IGNITION', 'CASCADE_1', 'CASCADE_2', 'SPILLWAY']


@dataclass
class HubSettings:
    service_name: str = 'CCE Cloud'
    version: str = '2.0.0'
    host: str = '0.0.0.0'
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ['*'])
    max_body_bytes: int = 1024 * 1024
    sync_secret: Optional[str] = None
    sync_header: str = 'x-sync-secret'
    rate_limit_enabled: bool = True
    rate_limit_window_s: float = 900.0
    rate_limit_max_requests: int = 100
    trust_proxy: bool = True
    stream_interval_s: float = 5.0
    retention: Dict[str, int] = field(default_factory=dict)
    log_level: str = 'INFO'

    @classmethod
    def from_config(cls, cfg: Config) -> 'HubSettings':
        service = cfg.section('service')
        api = cfg.section('api')
        sync = cfg.section('sync')
        limits = cfg.section('rate_limit')
        stream = cfg.section('stream')
        monitoring = cfg.section('monitoring')
        retention = cfg.section('retention').to_dict()
        return cls(
            service_name=service.get('name', cls.service_name),
            version=str(service.get('version', cls.version)),
            host=api.get('host', cls.host),
            port=int(api.get('port', cls.port)),
            cors_origins=list(api.get('cors_origins') or ['*']),
            max_body_bytes=int(api.get('max_body_bytes', cls.max_body_bytes)),
            sync_secret=clean_secret(sync.get('secret')),
            sync_header=str(sync.get('header') or cls.sync_header).lower(),
            rate_limit_enabled=bool(limits.get('enabled', True)),
            rate_limit_window_s=float(limits.get('window_s', cls.rate_limit_window_s)),
            rate_limit_max_requests=int(limits.get('max_requests', cls.rate_limit_max_requests)),
            trust_proxy=bool(limits.get('trust_proxy', cls.trust_proxy)),
            stream_interval_s=float(stream.get('interval_s', cls.stream_interval_s)),
            retention={key: int(value) for key, value in retention.items() if value},
            log_level=str(monitoring.get('log_level', cls.log_level)),
        )


def active_states(cfg: Config) -> List[str]:
    states = cfg.section('analytics').get('active_states')
    return list(states) if states else list(DEFAULT_ACTIVE_STATES)


def clean_secret(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or (text.startswith('${') and text.endswith('}')):
        return None
    return text
