from __future__ import annotations

import secrets
from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_warning
from emive_portal.security.session import SessionManager, session_manager

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
DEFAULT_EXEMPT_PREFIXES = ("/auth/login",)


class CSRFMiddleware(BaseHTTPMiddleware):
    """Double-submit check for cookie sessions on state-changing requests.

    Requests carrying ``x-api-key`` (the external customer portfolio API) are
    not cookie authenticated and skip the check.
    """

    def __init__(
        self,
        app,
        *,
        manager: SessionManager | None = None,
        exempt_paths: Iterable[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._session_manager = manager or session_manager
        self._exempt_paths = (*DEFAULT_EXEMPT_PREFIXES, *(exempt_paths or ()))
        self._settings = get_settings()

    async def dispatch(self, request: Request, call_next):
        if not self._settings.enable_csrf:
            return await call_next(request)
        if request.headers.get("x-api-key"):
            return await call_next(request)
        if request.method.upper() in SAFE_METHODS:
            return await call_next(request)

        path = request.url.path
        if any(path.startswith(prefix) for prefix in self._exempt_paths):
            return await call_next(request)

        session = await self._session_manager.load_session(request)
        if not session:
            # Unauthenticated requests are rejected by the route dependencies.
            return await call_next(request)

        header_token = request.headers.get("X-CSRF-Token") or request.headers.get("X-CSRFToken")
        if not header_token:
            log_warning(
                "CSRF validation failed - missing token",
                path=path,
                method=request.method,
                user_id=session.user_id,
            )
            return JSONResponse(status_code=403, content={"detail": "CSRF token missing"})

        if not secrets.compare_digest(header_token, session.csrf_token):
            log_warning(
                "CSRF validation failed - token mismatch",
                path=path,
                method=request.method,
                user_id=session.user_id,
            )
            return JSONResponse(status_code=403, content={"detail": "CSRF token mismatch"})

        return await call_next(request)
