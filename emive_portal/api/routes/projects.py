from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from emive_portal.api.dependencies.auth import get_current_user, require_engineering
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import projects as project_repo
from emive_portal.repositories import sale_forms as sale_form_repo
from emive_portal.schemas.projects import (
    CommentCreate,
    CommentResponse,
    EngineeringStatusRequest,
    ProjectCreate,
    ProjectDetail,
    ProjectResponse,
    ProjectUpdate,
    StatusChangeRequest,
    SubmitResponse,
)
from emive_portal.schemas.sale_forms import SaleFormFields, SaleFormResponse, SummarySection
from emive_portal.services import audit as audit_service
from emive_portal.services import project_workflow
from emive_portal.services import projects as project_service
from emive_portal.services import sale_forms as sale_form_service

router = APIRouter(prefix="/api/projects", tags=["Projects"])


async def _load_project(project_id: int, user: dict) -> dict:
    project = await project_repo.get_project(project_id)
    if not project or not project_service.can_view(project, user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def _raise_for(exc: Exception) -> NoReturn:
    if isinstance(exc, PermissionError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, (project_workflow.StatusTransitionError, sale_form_service.SaleFormLockedError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    engineering_status: Optional[str] = Query(default=None),
    vendedor_id: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    return await project_service.list_projects(
        current_user,
        status=status_filter,
        engineering_status=engineering_status,
        vendedor_id=vendedor_id,
        search=search,
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    tap_form = payload.tap_form.model_dump(exclude_unset=True) if payload.tap_form else None
    return await project_service.create_project(
        current_user, payload.model_dump(exclude={"tap_form"}), tap_form
    )


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    tap_form = await project_repo.get_tap_form(project_id)
    detail = dict(project)
    detail["tap_form"] = tap_form
    detail["history"] = await project_repo.list_status_history(project_id)
    detail["changed_fields"] = project_workflow.detect_changed_fields(
        project.get("dados_originais_pre_reenvio"), project, tap_form
    )
    return detail


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    payload: ProjectUpdate,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    tap_form = payload.tap_form.model_dump(exclude_unset=True) if payload.tap_form else None
    try:
        return await project_service.update_project(
            project,
            current_user,
            payload.model_dump(exclude_unset=True, exclude={"tap_form"}),
            tap_form,
        )
    except (ValueError, PermissionError) as exc:
        _raise_for(exc)


@router.post("/{project_id}/submit", response_model=SubmitResponse)
async def submit_project(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    try:
        return await project_service.submit_project(project, current_user)
    except (ValueError, PermissionError) as exc:
        _raise_for(exc)


@router.post("/{project_id}/status", response_model=ProjectResponse)
async def change_project_status(
    project_id: int,
    payload: StatusChangeRequest,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_engineering),
):
    project = await _load_project(project_id, current_user)
    try:
        updated = await project_service.change_status(
            project, current_user, payload.status, payload.reason
        )
    except ValueError as exc:
        _raise_for(exc)
    await audit_service.log_action(
        action="project.status",
        user_id=current_user["id"],
        entity_type="project",
        entity_id=project_id,
        previous_value={"status": project["status"]},
        new_value={"status": payload.status, "reason": payload.reason},
        request=request,
    )
    return updated


@router.post("/{project_id}/engineering", response_model=ProjectResponse)
async def change_engineering_status(
    project_id: int,
    payload: EngineeringStatusRequest,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_engineering),
):
    project = await _load_project(project_id, current_user)
    try:
        return await project_service.change_engineering_status(
            project, current_user, payload.status, payload.laudo_projeto
        )
    except ValueError as exc:
        _raise_for(exc)


@router.get("/{project_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    return await project_service.list_comments(project, current_user)


@router.post(
    "/{project_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    project_id: int,
    payload: CommentCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    return await project_service.add_comment(
        project, current_user, payload.texto, is_internal=payload.is_internal
    )


@router.get("/{project_id}/sale-form", response_model=Optional[SaleFormResponse])
async def get_sale_form(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    await _load_project(project_id, current_user)
    return await sale_form_repo.get_sale_form(project_id)


@router.post("/{project_id}/sale-form/start", response_model=SaleFormResponse)
async def start_sale_form(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    try:
        return await sale_form_service.start_sale_form(project, current_user)
    except (ValueError, PermissionError) as exc:
        _raise_for(exc)


@router.patch("/{project_id}/sale-form", response_model=SaleFormResponse)
async def save_sale_form(
    project_id: int,
    payload: SaleFormFields,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    try:
        return await sale_form_service.save_sale_form(
            project, current_user, payload.model_dump(exclude_unset=True)
        )
    except (ValueError, PermissionError) as exc:
        _raise_for(exc)


@router.post("/{project_id}/sale-form/complete", response_model=SaleFormResponse)
async def complete_sale_form(
    project_id: int,
    payload: Optional[SaleFormFields] = None,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    project = await _load_project(project_id, current_user)
    fields = payload.model_dump(exclude_unset=True) if payload else None
    try:
        return await sale_form_service.complete_sale_form(project, current_user, fields)
    except (ValueError, PermissionError) as exc:
        _raise_for(exc)


@router.get("/{project_id}/sale-form/summary", response_model=list[SummarySection])
async def sale_form_summary(
    project_id: int,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    await _load_project(project_id, current_user)
    sale_form = await sale_form_repo.get_sale_form(project_id)
    if not sale_form:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sale form not found")
    return sale_form_service.build_summary(sale_form)
