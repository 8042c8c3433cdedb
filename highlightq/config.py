"""Centralized configuration for HighlightQ.

Typed constants for the page pipeline, cache, providers, persistence and the
API server. Environment variables (optionally from .env) override the safe
defaults, so the pipeline runs offline with no configuration at all.
"""

from __future__ import annotations

from highlightq.infrastructure.env import get_env, get_env_bool, get_env_float, get_env_int

# --- App ---
APP_VERSION: str = "1.0.0"
ENV: str = get_env("HIGHLIGHTQ_ENV", "development")

# --- Scanning ---
SCAN_BATCH_SIZE: int = get_env_int("HIGHLIGHTQ_SCAN_BATCH_SIZE", 50)
MUTATION_DEBOUNCE_SECONDS: float = get_env_float("HIGHLIGHTQ_DEBOUNCE_SECONDS", 0.3)
MIN_SENTENCE_LENGTH: int = get_env_int("HIGHLIGHTQ_MIN_SENTENCE_LENGTH", 5)

# Shared by the initial scan, mutation rescans and the fallback text search
EXCLUDED_TAGS: frozenset[str] = frozenset(
    {"script", "style", "noscript", "textarea", "input", "select", "head", "title"}
)

# --- Rendering ---
WRAPPER_CLASS: str = "sem-sentiment"
WRAPPER_LABEL_ATTR: str = "data-sentiment"
STYLE_ELEMENT_ID: str = "semantic-highlighter-styles"

# --- Cache ---
CACHE_ENABLED: bool = get_env_bool("HIGHLIGHTQ_CACHE_ENABLED", True)
CACHE_TTL_MS: int = get_env_int("HIGHLIGHTQ_CACHE_TTL_MS", 24 * 60 * 60 * 1000)
CACHE_KEY_PREFIX: str = "sh_cache_"

# --- Providers ---
PROVIDER_MODE: str = get_env("HIGHLIGHTQ_PROVIDER", "local")
REMOTE_ENDPOINT: str = get_env("HIGHLIGHTQ_REMOTE_ENDPOINT", "")
REMOTE_CREDENTIAL: str = get_env("HIGHLIGHTQ_REMOTE_CREDENTIAL", "")
REMOTE_TIMEOUT_SECONDS: float = get_env_float("HIGHLIGHTQ_REMOTE_TIMEOUT", 10.0)
REMOTE_BREAKER_FAIL_MAX: int = get_env_int("HIGHLIGHTQ_BREAKER_FAIL_MAX", 5)
REMOTE_BREAKER_RESET_SECONDS: float = get_env_float("HIGHLIGHTQ_BREAKER_RESET_SECONDS", 60.0)

# --- Persistence ---
STORE_PATH: str = get_env("HIGHLIGHTQ_STORE_PATH", "")  # empty -> in-memory
CONFIG_STORAGE_KEY: str = "sentimentConfig"
HIGHLIGHTING_STORAGE_KEY: str = "highlightingEnabled"

# --- Boundary ---
RESTRICTED_URL_PATTERNS: tuple[str, ...] = (
    "chrome://",
    "chrome-extension://",
    "chrome.google.com/webstore",
    "chromewebstore.google.com",
    "chrome.google.com/web-store",
    "chrome-error://",
    "edge://",
    "brave://",
    "about:",
    "internal-page",
)

# --- API ---
API_HOST: str = get_env("HIGHLIGHTQ_API_HOST", "127.0.0.1")
API_PORT: int = get_env_int("HIGHLIGHTQ_API_PORT", 8000)
API_MAX_SENTENCES: int = 500
# Bearer key required by /classify and /api/messages; empty leaves them open (development)
API_KEY: str = get_env("HIGHLIGHTQ_API_KEY", "")
