from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from emive_portal.security.roles import AppRole


class UserBase(BaseModel):
    email: EmailStr
    nome: str = Field(..., min_length=1, max_length=255)
    telefone: Optional[str] = Field(default=None, max_length=50)
    filial: Optional[str] = Field(default=None, max_length=50)
    filiais: list[str] = Field(default_factory=list)
    role: AppRole = "vendedor"


class UserCreate(UserBase):
    password: Optional[str] = Field(default=None, min_length=8)


class UserUpdate(BaseModel):
    nome: Optional[str] = Field(default=None, min_length=1, max_length=255)
    telefone: Optional[str] = Field(default=None, max_length=50)
    filial: Optional[str] = Field(default=None, max_length=50)
    filiais: Optional[list[str]] = None
    role: Optional[AppRole] = None
    is_active: Optional[bool] = None


class UserResponse(UserBase):
    id: int
    must_change_password: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserCreatedResponse(UserResponse):
    temporary_password: Optional[str] = None
