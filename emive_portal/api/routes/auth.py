from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from emive_portal.api.dependencies.auth import get_current_session, get_current_user
from emive_portal.api.dependencies.database import require_database
from emive_portal.core.logging import log_error, log_info
from emive_portal.repositories import auth as auth_repo
from emive_portal.repositories import users as user_repo
from emive_portal.schemas.auth import (
    LoginRequest,
    LoginResponse,
    PasswordChangeRequest,
    SessionInfo,
    StatusMessage,
)
from emive_portal.schemas.users import UserResponse
from emive_portal.security.passwords import verify_password
from emive_portal.security.session import SessionData, client_ip, session_manager

router = APIRouter(prefix="/auth", tags=["Authentication"])
LOGIN_RATE_LIMIT_WINDOW = 300
LOGIN_RATE_LIMIT_ATTEMPTS = 5


def _serialize_session(session: SessionData) -> SessionInfo:
    return SessionInfo(
        id=session.id,
        user_id=session.user_id,
        created_at=session.created_at,
        expires_at=session.expires_at,
        last_seen_at=session.last_seen_at,
        ip_address=session.ip_address,
        user_agent=session.user_agent,
        csrf_token=session.csrf_token,
    )


def _build_login_response(user: dict[str, Any], session: SessionData) -> LoginResponse:
    return LoginResponse(
        user=UserResponse.model_validate(user),
        session=_serialize_session(session),
        must_change_password=bool(user.get("must_change_password")),
    )


def _log_login_failure(request: Request, email: str, reason: str) -> None:
    log_error(
        f"AUTH LOGIN FAIL email={str(email or '').lower()} ip={client_ip(request)} reason={reason}",
        user_agent=request.headers.get("user-agent", "unknown"),
    )


@router.post("/login", response_model=LoginResponse, summary="Authenticate and open a session")
async def login(
    payload: LoginRequest,
    request: Request,
    _: None = Depends(require_database),
) -> Response:
    identifier = ":".join(filter(None, [payload.email.lower(), client_ip(request)]))
    allowed = await auth_repo.register_login_attempt(
        identifier,
        window_seconds=LOGIN_RATE_LIMIT_WINDOW,
        max_attempts=LOGIN_RATE_LIMIT_ATTEMPTS,
    )
    if not allowed:
        _log_login_failure(request, payload.email, "rate_limited")
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts")

    user = await user_repo.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash")):
        _log_login_failure(request, payload.email, "invalid_credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.get("is_active", True):
        _log_login_failure(request, payload.email, "inactive")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")

    await auth_repo.clear_login_attempts(identifier)
    session = await session_manager.create_session(user["id"], request)
    response = JSONResponse(content=_build_login_response(user, session).model_dump(mode="json"))
    session_manager.apply_session_cookies(response, session)
    log_info(f"AUTH LOGIN SUCCESS email={user['email']} user_id={user['id']} ip={client_ip(request)}")
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Invalidate the current session")
async def logout(
    response: Response,
    session: SessionData = Depends(get_current_session),
) -> Response:
    await session_manager.revoke_session(session)
    session_manager.clear_session_cookies(response)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


@router.get("/session", response_model=LoginResponse, summary="Return the current session")
async def get_session(
    session: SessionData = Depends(get_current_session),
    current_user: dict = Depends(get_current_user),
) -> LoginResponse:
    return _build_login_response(current_user, session)


@router.get("/me", response_model=UserResponse, summary="Return the authenticated user")
async def me(current_user: dict = Depends(get_current_user)) -> dict:
    return current_user


@router.post("/password/change", response_model=StatusMessage, summary="Change the authenticated user's password")
async def change_password(
    payload: PasswordChangeRequest,
    current_user: dict = Depends(get_current_user),
) -> StatusMessage:
    if not verify_password(payload.current_password, current_user.get("password_hash")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be different from the current password",
        )
    await user_repo.set_user_password(current_user["id"], payload.new_password)
    return StatusMessage(detail="Password updated successfully.")
