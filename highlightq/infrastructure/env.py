"""
Centralized environment loader for HighlightQ.

config.py calls ensure_env_loaded() before reading any HIGHLIGHTQ_* variable,
so a project-level .env works for the API server and the CLI alike.

Side Effects:
    - Loads the nearest .env file (searching upward from this package)
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Load the .env file exactly once.

    Args:
        env_path: Optional explicit path. When None, the first .env found
            walking up from this file wins, then the current directory.

    Side Effects:
        - Populates os.environ (existing variables are not overridden)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path(__file__).parent
        while current != current.parent:
            candidate = current / ".env"
            if candidate.exists():
                env_path = candidate
                break
            current = current.parent

    if env_path and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_env(key: str, default: str = "") -> str:
    ensure_env_loaded()
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    raw = get_env(key)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def get_env_float(key: str, default: float) -> float:
    raw = get_env(key)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def get_env_bool(key: str, default: bool) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
