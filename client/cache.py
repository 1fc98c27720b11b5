import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union


logger = logging.getLogger(__name__)


class SnapshotCache:
    """Last successfully fetched dashboard payload, kept as a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            if not self.path.exists():
                return None
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as exc:
            logger.warning("Cached snapshot unreadable at %s: %s", self.path, exc)
            return None
        return data if isinstance(data, dict) else None

    def save(self, payload: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + '.tmp')
            tmp.write_text(json.dumps(payload, default=str), encoding='utf-8')
            tmp.replace(self.path)
        except OSError as exc:
            logger.error("Failed to persist snapshot cache %s: %s", self.path, exc)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
