from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status

from emive_portal.repositories import users as user_repo
from emive_portal.security.roles import (
    CATALOG_MANAGERS,
    ENGINEERING_ROLES,
    MAINTENANCE_MANAGERS,
    STOCK_IMPORTERS,
)
from emive_portal.security.session import SessionData, session_manager


async def get_current_session(request: Request) -> SessionData:
    session = await session_manager.load_session(request)
    if not session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return session


async def get_current_user(
    session: SessionData = Depends(get_current_session),
) -> dict:
    user = await user_repo.get_user_by_id(session.user_id)
    if not user or not user.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_roles(*roles: str, detail: str | None = None) -> Callable[..., Awaitable[dict]]:
    """Build a dependency that admits users holding one of ``roles``."""

    allowed = frozenset(roles)
    message = detail or "Insufficient privileges"

    async def _dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
        return current_user

    return _dependency


require_admin = require_roles("admin", detail="Administrator privileges required")
require_maintenance_manager = require_roles(
    *MAINTENANCE_MANAGERS, detail="Maintenance management privileges required"
)
require_stock_importer = require_roles(
    *STOCK_IMPORTERS, detail="Only admin or administrativo users may import stock"
)
require_engineering = require_roles(
    *ENGINEERING_ROLES, detail="Engineering privileges required"
)
require_catalog_manager = require_roles(
    *CATALOG_MANAGERS, detail="Catalog management privileges required"
)
