"""FastAPI server for HighlightQ sentence classification"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from highlightq.api.middleware.auth import APIKeyAuth
from highlightq.api.routes.classify import router as classify_router
from highlightq.api.routes.health import router as health_router
from highlightq.api.routes.messages import router as messages_router
from highlightq.api.state import ApiServices
from highlightq.classification.models import ProviderConfig
from highlightq.classification.providers import SentimentProvider, build_provider
from highlightq.classification.runtime import ProviderRuntime
from highlightq.config import API_HOST, API_KEY, API_PORT, APP_VERSION, ENV
from highlightq.gateway.boundary import BoundaryGateway
from highlightq.gateway.messages import MessageRouter
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter
from highlightq.storage.kv import KeyValueStore, open_store

logger = get_logger(__name__)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8000",
]


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Custom validation error handler that prevents leaking internal validation logic.

    Side Effects:
        - Logs validation error locations (never the submitted text)
        - Increments api.validation_errors counter
    """
    logger.warning(
        "Validation error on %s: %s",
        request.url.path,
        [err["loc"] for err in exc.errors()],
    )
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            # Only expose field names, not validation logic
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


def create_app(
    store: KeyValueStore | None = None,
    config: ProviderConfig | None = None,
    provider_factory: Callable[[ProviderConfig], SentimentProvider] = build_provider,
    api_key: str | None = None,
) -> FastAPI:
    """
    Build the API with its own store, runtime, gateway and message router.

    Args:
        store: Key-value store (defaults to HIGHLIGHTQ_STORE_PATH or memory)
        config: Starting provider config (defaults to environment)
        provider_factory: Provider builder, replaceable in tests
        api_key: Bearer key for protected routes (defaults to HIGHLIGHTQ_API_KEY)
    """
    kv = store if store is not None else open_store()
    runtime = ProviderRuntime(kv, config=config or ProviderConfig.from_env(), provider_factory=provider_factory)
    gateway = BoundaryGateway(runtime)
    services = ApiServices(store=kv, runtime=runtime, gateway=gateway, router=MessageRouter(gateway, runtime))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        ready = await runtime.initialize()
        logger.info(
            "HighlightQ API started (env=%s, provider=%s, ready=%s)",
            ENV,
            runtime.config.mode,
            ready,
        )
        yield
        close = getattr(kv, "close", None)
        if callable(close):
            close()
        logger.info("HighlightQ API stopped")

    app = FastAPI(title="HighlightQ API", version=APP_VERSION, lifespan=lifespan)
    app.state.services = services
    app.state.auth = APIKeyAuth(API_KEY if api_key is None else api_key)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(health_router)
    app.include_router(classify_router)
    app.include_router(messages_router)
    return app


def main() -> None:
    import uvicorn

    uvicorn.run(create_app(), host=API_HOST, port=API_PORT, log_level="info")


if __name__ == "__main__":
    main()
