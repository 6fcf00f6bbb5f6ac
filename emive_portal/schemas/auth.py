from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from emive_portal.schemas.users import UserResponse


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SessionInfo(BaseModel):
    id: int
    user_id: int
    created_at: datetime
    expires_at: datetime
    last_seen_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    csrf_token: str


class LoginResponse(BaseModel):
    user: UserResponse
    session: SessionInfo
    must_change_password: bool = False


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class StatusMessage(BaseModel):
    detail: str
