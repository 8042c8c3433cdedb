"""
Process-wide logging setup for HighlightQ.

Every module asks for its logger through get_logger(); the first call attaches
one stream handler to the root logger. Provider credentials are registered
with register_secret() so they never reach a log line in clear text.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def mask_secret(secret: str, visible: int = 4) -> str:
    secret = secret.strip()
    if len(secret) <= visible:
        return "*" * len(secret)
    return f"{secret[:visible]}{'*' * (len(secret) - visible)}"


class SecretMaskFilter(logging.Filter):
    """Rewrites records that contain a registered secret."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: list[str] = []

    def add(self, secret: str) -> None:
        secret = (secret or "").strip()
        if secret and secret not in self._secrets:
            self._secrets.append(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        sanitized = message
        for secret in self._secrets:
            sanitized = sanitized.replace(secret, mask_secret(secret))
        if sanitized != message:
            record.msg = sanitized
            record.args = ()
        return True


_SECRET_FILTER: Final[SecretMaskFilter] = SecretMaskFilter()


def _resolve_level() -> int:
    level_name = os.getenv("HIGHLIGHTQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def register_secret(secret: str | None) -> None:
    """Mask `secret` in every record passing through the HighlightQ handler."""
    _SECRET_FILTER.add(secret or "")


def get_logger(name: str) -> logging.Logger:
    """Return a module logger configured with a single stream handler."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(_SECRET_FILTER)
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level)
        _HANDLER_ATTACHED = True

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
