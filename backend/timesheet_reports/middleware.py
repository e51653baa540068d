from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .config import settings
from .token_utils import SESSION_COOKIE, verify_session_token

PUBLIC_PATHS = {"/healthz", "/api/login", "/api/logout", "/docs", "/redoc", "/openapi.json"}


class SessionMiddleware(BaseHTTPMiddleware):
    """Reject requests that do not carry a valid session cookie."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS" or self._is_public(request.url.path):
            return await call_next(request)
        token = request.cookies.get(SESSION_COOKIE)
        payload = verify_session_token(token, settings.session_secret)
        if payload is None:
            return JSONResponse({"detail": "Unauthorized"}, status_code=401)
        request.state.user = payload
        return await call_next(request)

    @staticmethod
    def _is_public(path: str) -> bool:
        normalized = path.rstrip("/") or "/"
        return normalized in PUBLIC_PATHS
