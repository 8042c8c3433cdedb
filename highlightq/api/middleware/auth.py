"""Bearer-key authentication for the HighlightQ API"""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, Request, status

from highlightq.observability.logging import get_logger, register_secret

logger = get_logger(__name__)


class APIKeyAuth:
    """
    Single shared API key, sent as "Authorization: Bearer <key>".

    This is the same header the remote provider sends, so one HighlightQ
    instance can serve as another's remote endpoint.
    """

    def __init__(self, api_key: str | None):
        self.api_key = (api_key or "").strip() or None
        if self.api_key:
            register_secret(self.api_key)
        else:
            logger.warning("HIGHLIGHTQ_API_KEY not set - API endpoints are unprotected!")

    def verify(self, authorization: str | None) -> bool:
        # No key configured: development mode
        if not self.api_key:
            return True

        if not authorization:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing authorization header",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            scheme, token = authorization.split()
            if scheme.lower() != "bearer":
                raise ValueError("Invalid authentication scheme")
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authorization header format. Expected: Bearer {api_key}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        if not secrets.compare_digest(token, self.api_key):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
        return True


def require_api_key(request: Request, authorization: str | None = Header(None)) -> bool:
    """
    Dependency for protected endpoints.

    Usage:
        @router.post("/classify")
        async def classify(..., authenticated: bool = Depends(require_api_key)):
            ...
    """
    return request.app.state.auth.verify(authorization)
