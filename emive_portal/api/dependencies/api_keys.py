from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, status

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_warning
from emive_portal.security.session import client_ip


async def require_customer_api_key(request: Request) -> str:
    """Authorise the external customer portfolio API via ``x-api-key``."""

    expected = get_settings().customer_api_key
    if not expected:
        log_warning("Customer API called but CUSTOMER_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Customer API is not configured",
        )
    provided = request.headers.get("x-api-key")
    if not provided:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key required")
    if not secrets.compare_digest(provided, expected):
        log_warning(
            "Customer API rejected invalid key",
            path=request.url.path,
            ip=client_ip(request),
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    # Last four characters only; audit lines never carry the full key.
    return provided[-4:]
