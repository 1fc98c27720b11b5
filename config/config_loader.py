import os
import re
from pathlib import Path
from collections.abc import Mapping
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'config.yaml'
ENV_OVERRIDE_PREFIX = 'HUB__'

_PLACEHOLDER = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


def _wrap(value: Any) -> Any:
    return SectionProxy(value) if isinstance(value, dict) else value


def expand_placeholders(text: str) -> Optional[str]:
    """Substitute ``${VAR}`` / ``${VAR:-default}`` references from the environment.

    A value that is nothing but one unset placeholder without a default
    becomes ``None``, so a missing secret reads as "not configured".
    """
    whole = _PLACEHOLDER.fullmatch(text)
    if whole is not None:
        name, default = whole.groups()
        return os.getenv(name) or default
    return _PLACEHOLDER.sub(lambda m: os.getenv(m.group(1)) or m.group(2) or '', text)


class SectionProxy(Mapping):
    """Read-only view of one config section with attribute access."""

    def __init__(self, data: Dict[str, Any]):
        self._data = data or {}

    def __getitem__(self, key: str) -> Any:
        return _wrap(self._data[key])

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        value = self._data.get(name)
        if value is None:
            raise AttributeError(f"Config key '{name}' not found")
        return _wrap(value)

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return _wrap(self._data.get(key, default))

    def to_dict(self) -> Dict[str, Any]:
        return self._data


class Config:
    """YAML-backed hub configuration.

    Load order: the YAML file (``HUB_CONFIG`` or the packaged ``config.yaml``),
    placeholder expansion, then ``HUB__SECTION__KEY`` environment overrides,
    then explicit ``overrides``.
    """

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        self.config_path = Path(config_path or os.getenv('HUB_CONFIG') or DEFAULT_CONFIG_PATH)
        self._overrides = overrides or {}
        self._data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise RuntimeError(f"Configuration file not found at {self.config_path}")
        with self.config_path.open('r') as fh:
            try:
                raw = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise RuntimeError(f"Error parsing YAML configuration: {exc}") from exc
        if not isinstance(raw, dict):
            raise RuntimeError(f"Configuration root must be a mapping in {self.config_path}")
        data = self._resolve_env_vars(raw)
        data = _merge(data, _env_overrides(os.environ))
        return _merge(data, self._overrides)

    def _resolve_env_vars(self, node: Any) -> Any:
        if isinstance(node, dict):
            return {key: self._resolve_env_vars(value) for key, value in node.items()}
        if isinstance(node, list):
            return [self._resolve_env_vars(item) for item in node]
        if isinstance(node, str) and '${' in node:
            return expand_placeholders(node)
        return node

    def get(self, key: str, default: Any = None) -> Any:
        return _wrap(self._data.get(key, default))

    def section(self, name: str) -> SectionProxy:
        value = self._data.get(name)
        return SectionProxy(value if isinstance(value, dict) else {})

    def __getitem__(self, key: str) -> Any:
        return _wrap(self._data[key])

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            value = self._data[name]
        except KeyError as exc:
            raise AttributeError(f"Config key '{name}' not found") from exc
        return _wrap(value)

    def reload(self) -> None:
        self._data = self._load_config()


def _env_overrides(environ: Mapping) -> Dict[str, Any]:
    # HUB__API__PORT=9000 -> {'api': {'port': 9000}}; values parsed as YAML scalars
    overrides: Dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_OVERRIDE_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_OVERRIDE_PREFIX):].split('__') if part]
        if not path:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                break
        else:
            node[path[-1]] = value
    return overrides


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


config = Config()
