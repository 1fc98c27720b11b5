import logging
from typing import Optional, Union


def setup_logging(level: Union[int, str] = logging.INFO, log_format: Optional[str] = None) -> None:
    """
    Configure process-wide logging with a consistent format.

    Called once from the hub entrypoint or the producer CLI. Accepts either a
    numeric level or a level name from the ``monitoring.log_level`` setting.
    Subsequent calls are ignored once root handlers exist.
    """
    if logging.getLogger().handlers:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    fmt = log_format or "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)
    # uvicorn's access log duplicates the request lines we already emit
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
