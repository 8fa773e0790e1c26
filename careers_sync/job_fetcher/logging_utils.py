from __future__ import annotations

import json
import logging
from typing import Any, Dict, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Union[str, int] = "INFO") -> None:
    if isinstance(level, str):
        level = level.strip().upper() or "INFO"
    logging.basicConfig(level=level, format=LOG_FORMAT)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log a single-line JSON event for easy parsing in log aggregators."""

    payload: Dict[str, Any] = {"event": event, **fields}
    try:
        msg = json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str)
    except (TypeError, ValueError):
        safe_payload = {
            k: (v if isinstance(v, (str, int, float, bool)) or v is None else str(v)) for k, v in payload.items()
        }
        msg = json.dumps(safe_payload, ensure_ascii=True, sort_keys=True)
    logger.log(level, msg)
