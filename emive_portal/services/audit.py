from __future__ import annotations

from typing import Any

from fastapi import Request

from emive_portal.core.logging import log_audit_event
from emive_portal.repositories import audit_logs as audit_repo
from emive_portal.security.session import client_ip

_EVENT_TYPES = {
    "stock.": "STOCK ACTION",
    "customer_api.": "CUSTOMER API",
    "auth.": "AUTH ACTION",
}


def _determine_event_type(action: str) -> str:
    for prefix, event_type in _EVENT_TYPES.items():
        if action.startswith(prefix):
            return event_type
    return "API OPERATION"


async def log_action(
    *,
    action: str,
    user_id: int | None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    previous_value: Any = None,
    new_value: Any = None,
    metadata: dict[str, Any] | None = None,
    request: Request | None = None,
    api_key: str | None = None,
) -> None:
    """Persist an audit row and mirror it to the audit log sink."""

    ip_address = client_ip(request) if request is not None else None

    await audit_repo.create_audit_log(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        previous_value=previous_value,
        new_value=new_value,
        metadata=metadata,
        api_key=api_key,
        ip_address=ip_address,
    )

    extra_meta: dict[str, Any] = {}
    if api_key:
        extra_meta["api_key"] = api_key
    log_audit_event(
        _determine_event_type(action),
        action,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=ip_address,
        **extra_meta,
    )
