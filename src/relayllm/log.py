"""Logging setup shared by the library and the gateway app"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

LOG_LEVEL_ENV_VAR = "RELAYLLM_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Union[int, str, None] = None) -> logging.Logger:
    """Install the default handler on the ``relayllm`` logger if none exists

    The level comes from ``level``, then ``$RELAYLLM_LOG_LEVEL``, then INFO.
    """
    resolved: Union[int, str] = level or os.environ.get(LOG_LEVEL_ENV_VAR) or logging.INFO
    if isinstance(resolved, str):
        resolved = resolved.upper()

    logger = logging.getLogger("relayllm")
    if not logger.handlers and not logging.getLogger().handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logger.setLevel(resolved)
    return logger


def truncate(text: Optional[str], limit: int = 2000) -> str:
    """Guardrail to avoid logging extremely large bodies."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
