from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from emive_portal.api.dependencies.auth import get_current_user, require_admin
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import auth as auth_repo
from emive_portal.repositories import users as user_repo
from emive_portal.schemas.users import UserCreate, UserCreatedResponse, UserResponse, UserUpdate
from emive_portal.security.passwords import generate_temporary_password
from emive_portal.security.roles import AppRole
from emive_portal.services import audit as audit_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    role: Optional[AppRole] = Query(default=None),
    include_inactive: bool = Query(default=False),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await user_repo.list_users(role=role, include_inactive=include_inactive)


@router.post("", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    if await user_repo.get_user_by_email(payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    password = payload.password or generate_temporary_password()
    created = await user_repo.create_user(
        email=payload.email,
        nome=payload.nome,
        password=password,
        role=payload.role,
        telefone=payload.telefone,
        filial=payload.filial,
        filiais=payload.filiais,
        must_change_password=True,
    )
    await audit_service.log_action(
        action="user.create",
        user_id=current_user["id"],
        entity_type="user",
        entity_id=created["id"],
        new_value={"email": created["email"], "role": created["role"]},
        request=request,
    )
    response = dict(created)
    if not payload.password:
        response["temporary_password"] = password
    return response


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    existing = await user_repo.get_user_by_id(user_id)
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    data = payload.model_dump(exclude_unset=True)
    updated = await user_repo.update_user(user_id, **data)
    if data.get("is_active") is False:
        await auth_repo.deactivate_user_sessions(user_id)
    await audit_service.log_action(
        action="user.update",
        user_id=current_user["id"],
        entity_type="user",
        entity_id=user_id,
        previous_value={key: existing.get(key) for key in data},
        new_value=data,
        request=request,
    )
    return updated


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user(
    user_id: int,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    if user_id == current_user["id"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate yourself")
    existing = await user_repo.get_user_by_id(user_id)
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await user_repo.update_user(user_id, is_active=False)
    await auth_repo.deactivate_user_sessions(user_id)
    await audit_service.log_action(
        action="user.deactivate",
        user_id=current_user["id"],
        entity_type="user",
        entity_id=user_id,
        request=request,
    )
    return None
