"""Health endpoint for the HighlightQ API.

- /health - service status, active provider and pipeline counters
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends

from highlightq.api.state import ApiServices, get_services
from highlightq.config import APP_VERSION
from highlightq.observability.telemetry import get_latency_stats, snapshot_counters

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(services: ApiServices = Depends(get_services)) -> dict[str, Any]:
    """Health check endpoint. Does not call the provider."""
    snapshot = services.runtime.snapshot()
    counters = snapshot_counters()
    return {
        "status": "healthy",
        "service": "HighlightQ API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "provider": {
            "mode": snapshot.config.mode,
            "active": snapshot.provider.name,
            "initialized": snapshot.provider.initialized,
            "cache_enabled": snapshot.config.cache_enabled,
        },
        "counters": {name: value for name, value in counters.items() if not name.startswith("circuit.")},
        "latency": {"classify": get_latency_stats("api.classify")},
    }
