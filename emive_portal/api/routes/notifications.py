from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from emive_portal.api.dependencies.auth import get_current_user
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import notifications as notifications_repo

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: int
    kind: str
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    lido: bool = False
    lido_em: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationFeed(BaseModel):
    unread: int
    items: list[NotificationResponse]


@router.get("", response_model=NotificationFeed)
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    items = await notifications_repo.list_for_user(
        current_user["id"], unread_only=unread_only, limit=limit
    )
    unread = await notifications_repo.count_unread(current_user["id"])
    return {"unread": unread, "items": items}


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(
    notification_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    if not await notifications_repo.mark_read(notification_id, current_user["id"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return None


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_notifications_read(
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    await notifications_repo.mark_all_read(current_user["id"])
    return None
