import json
import logging
from typing import Any

from project_factory.core.config import settings


def _category_enabled(category: str | None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    if category == "boundary_codes":
        return settings.FLOW_LOGS_BOUNDARY_CODES_ENABLED
    if category == "relationships":
        return settings.FLOW_LOGS_RELATIONSHIPS_ENABLED
    return True


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    if _category_enabled(category):
        logger.info(msg, *args, **kwargs)


def truncated(payload: Any) -> str:
    """Render a payload for debug logs, cut at DEBUG_LOG_CHAR_LIMIT."""
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        text = str(payload)
    limit = max(0, settings.DEBUG_LOG_CHAR_LIMIT)
    if len(text) <= limit:
        return text
    return text[:limit] + "...(truncated)"
