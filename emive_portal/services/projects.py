from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from emive_portal.core.logging import log_info
from emive_portal.repositories import projects as project_repo
from emive_portal.services import notifications as notification_service
from emive_portal.services import project_workflow
from emive_portal.services.project_workflow import StatusTransitionError

PROJECT_FIELDS = (
    "cliente_condominio_nome",
    "cliente_cidade",
    "cliente_estado",
    "endereco_condominio",
    "prazo_entrega_projeto",
    "data_assembleia",
    "numero_unidades",
    "observacoes",
)


class ProjectPermissionError(PermissionError):
    pass


def can_view(project: Mapping[str, Any], user: Mapping[str, Any]) -> bool:
    if user.get("role") == "vendedor":
        return project.get("created_by_user_id") == user.get("id")
    return True


def _ensure_editor(project: Mapping[str, Any], user: Mapping[str, Any]) -> None:
    if user.get("role") == "admin":
        return
    if project.get("created_by_user_id") != user.get("id"):
        raise ProjectPermissionError("Only the project's seller may edit it")


async def create_project(
    user: Mapping[str, Any],
    fields: Mapping[str, Any],
    tap_form: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    numero = await project_repo.next_project_number()
    data = {field: fields[field] for field in PROJECT_FIELDS if field in fields}
    project = await project_repo.create_project(
        numero_projeto=numero,
        created_by_user_id=user["id"],
        vendedor_nome=user.get("nome") or user.get("email"),
        vendedor_email=user.get("email"),
        status="RASCUNHO",
        sale_status="NAO_INICIADO",
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
        **data,
    )
    if tap_form:
        await project_repo.upsert_tap_form(project["id"], **dict(tap_form))
    log_info("Project draft created", project_id=project["id"], numero=numero, user_id=user["id"])
    return project


async def update_project(
    project: Mapping[str, Any],
    user: Mapping[str, Any],
    fields: Mapping[str, Any],
    tap_form: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    _ensure_editor(project, user)
    if project["status"] not in project_workflow.EDITABLE_STATUSES:
        raise StatusTransitionError(
            f"Project cannot be edited while {project_workflow.STATUS_LABELS.get(project['status'], project['status'])}"
        )
    updates = {field: fields[field] for field in PROJECT_FIELDS if field in fields}
    updated = await project_repo.update_project(project["id"], **updates)
    if tap_form:
        await project_repo.upsert_tap_form(project["id"], **dict(tap_form))
    return updated


async def submit_project(project: Mapping[str, Any], user: Mapping[str, Any]) -> dict[str, Any]:
    """Send a draft or pending project to engineering.

    Returns the updated project, the changed fields for a resubmission and the
    notification outcome. Email failures never undo the submission.
    """

    _ensure_editor(project, user)
    current = project["status"]
    if current not in project_workflow.SUBMITTABLE_STATUSES:
        raise StatusTransitionError(f"Cannot submit a project in status {current}")
    project_workflow.ensure_project_transition(current, "ENVIADO")

    is_resubmission = current == "PENDENTE_INFO"
    changed_fields: list[dict[str, Any]] = []
    if is_resubmission:
        tap_form = await project_repo.get_tap_form(project["id"])
        changed_fields = project_workflow.detect_changed_fields(
            project.get("dados_originais_pre_reenvio"), project, tap_form
        )

    updates: dict[str, Any] = {"status": "ENVIADO"}
    if not project.get("engineering_status"):
        updates["engineering_status"] = "EM_RECEBIMENTO"
        updates["engineering_received_at"] = datetime.utcnow()
    updated = await project_repo.update_project(project["id"], **updates)
    await project_repo.add_status_history(
        project_id=project["id"],
        from_status=current,
        to_status="ENVIADO",
        reason="Reenvio com informações adicionais" if is_resubmission else None,
        user_id=user.get("id"),
        user_name=user.get("nome"),
    )
    notification = await notification_service.notify_project_submitted(
        updated, is_resubmission=is_resubmission
    )
    log_info(
        "Project submitted",
        project_id=project["id"],
        resubmission=is_resubmission,
        changed=len(changed_fields),
    )
    return {"project": updated, "changed_fields": changed_fields, "notification": notification}


async def change_status(
    project: Mapping[str, Any],
    user: Mapping[str, Any],
    target: str,
    reason: str | None = None,
) -> dict[str, Any]:
    current = project["status"]
    project_workflow.ensure_project_transition(current, target)
    updates: dict[str, Any] = {"status": target}
    if target == "PENDENTE_INFO":
        tap_form = await project_repo.get_tap_form(project["id"])
        updates["dados_originais_pre_reenvio"] = project_workflow.build_resubmission_snapshot(
            project, tap_form
        )
    updated = await project_repo.update_project(project["id"], **updates)
    await project_repo.add_status_history(
        project_id=project["id"],
        from_status=current,
        to_status=target,
        reason=reason,
        user_id=user.get("id"),
        user_name=user.get("nome"),
    )
    await notification_service.notify_project_status_changed(
        updated,
        new_status=target,
        changed_by=str(user.get("nome") or user.get("email") or ""),
        comment=reason,
    )
    return updated


async def change_engineering_status(
    project: Mapping[str, Any],
    user: Mapping[str, Any],
    target: str,
    laudo_projeto: str | None = None,
) -> dict[str, Any]:
    project_workflow.ensure_engineering_transition(project.get("engineering_status"), target)
    updates: dict[str, Any] = {"engineering_status": target}
    timestamp_field = project_workflow.engineering_timestamp_field(target)
    if timestamp_field:
        updates[timestamp_field] = datetime.utcnow()
    if target == "CONCLUIDO" and laudo_projeto is not None:
        updates["laudo_projeto"] = laudo_projeto
    updated = await project_repo.update_project(project["id"], **updates)
    await notification_service.notify_engineering_status(updated, engineering_status=target)
    log_info(
        "Engineering status changed",
        project_id=project["id"],
        status=target,
        user_id=user.get("id"),
    )
    return updated


async def add_comment(
    project: Mapping[str, Any],
    user: Mapping[str, Any],
    texto: str,
    *,
    is_internal: bool = False,
) -> dict[str, Any]:
    if user.get("role") == "vendedor":
        is_internal = False
    return await project_repo.add_comment(
        project_id=project["id"],
        user_id=user["id"],
        user_name=str(user.get("nome") or user.get("email")),
        user_role=user.get("role"),
        texto=texto,
        is_internal=is_internal,
    )


async def list_comments(project: Mapping[str, Any], user: Mapping[str, Any]) -> list[dict[str, Any]]:
    return await project_repo.list_comments(
        project["id"], include_internal=user.get("role") != "vendedor"
    )


async def list_projects(
    user: Mapping[str, Any],
    *,
    status: str | None = None,
    engineering_status: str | None = None,
    vendedor_id: int | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    if user.get("role") == "vendedor":
        vendedor_id = user["id"]
    return await project_repo.list_projects(
        status=status,
        engineering_status=engineering_status,
        created_by_user_id=vendedor_id,
        search=search,
    )
