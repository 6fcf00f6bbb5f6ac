from __future__ import annotations

from html import escape
from typing import Any, Mapping

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_error, log_info
from emive_portal.repositories import notifications as notifications_repo
from emive_portal.repositories import users as user_repo
from emive_portal.services import email as email_service
from emive_portal.services.project_workflow import ENGINEERING_STATUS_LABELS, STATUS_LABELS


def _project_link(project_id: int) -> str:
    base = get_settings().portal_url
    return f"{str(base).rstrip('/')}/projetos/{project_id}" if base else f"/projetos/{project_id}"


def _location(project: Mapping[str, Any]) -> str:
    cidade = project.get("cliente_cidade")
    estado = project.get("cliente_estado")
    if cidade and estado:
        return f"{cidade} - {estado}"
    return cidade or estado or "Não informado"


async def notify_project_submitted(
    project: Mapping[str, Any], *, is_resubmission: bool
) -> dict[str, Any]:
    """Tell every engineering user that a project entered the queue.

    In-app notifications are always written; email delivery failures are logged
    and reported in the result instead of propagating to the caller.
    """

    project_name = str(project.get("cliente_condominio_nome") or "")
    vendedor = str(project.get("vendedor_nome") or "")
    engineers = await user_repo.list_users(role="projetos")

    if is_resubmission:
        kind = "PROJECT_RESUBMITTED"
        title = "Projeto Reenviado"
        message = f'O projeto "{project_name}" foi reenviado por {vendedor} com informações adicionais'
        subject = f"Projeto Reenviado: {project_name}"
        heading = "Projeto Reenviado com Informações Adicionais"
        intro = "Um projeto foi reenviado com informações adicionais e está aguardando nova análise:"
    else:
        kind = "PROJECT_SUBMITTED"
        title = "Novo Projeto Enviado"
        message = f'O projeto "{project_name}" foi enviado por {vendedor}'
        subject = f"Novo Projeto Enviado: {project_name}"
        heading = "Novo Projeto Recebido"
        intro = "Um novo projeto foi enviado e está aguardando análise:"

    await notifications_repo.create_for_users(
        [user["id"] for user in engineers],
        kind=kind,
        title=title,
        message=message,
        entity_type="project",
        entity_id=project.get("id"),
    )

    emails = [user["email"] for user in engineers if user.get("email")]
    result: dict[str, Any] = {"notified": len(engineers), "email_sent": False, "error": None}
    if not emails:
        return result

    vendedor_email = project.get("vendedor_email")
    html_body = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #1E40AF;">{escape(heading)}</h1>'
        "<p>Olá,</p>"
        f"<p>{escape(intro)}</p>"
        '<div style="background-color: #F3F4F6; padding: 20px; border-radius: 8px;">'
        f"<h2>{escape(project_name)}</h2>"
        f"<p><strong>Vendedor:</strong> {escape(vendedor)}</p>"
        + (f"<p><strong>Email:</strong> {escape(str(vendedor_email))}</p>" if vendedor_email else "")
        + f"<p><strong>Localização:</strong> {escape(_location(project))}</p>"
        "</div>"
        f'<p><a href="{escape(_project_link(int(project.get("id") or 0)))}">Abrir projeto</a></p>'
        "</div>"
    )
    try:
        result["email_sent"] = await email_service.send_email(
            subject=subject,
            recipients=emails,
            html_body=html_body,
            text_body="Notificação de projeto",
        )
    except email_service.EmailDispatchError as exc:
        log_error("Project submission email failed", project_id=project.get("id"), error=str(exc))
        result["error"] = str(exc)
    else:
        log_info("Project submission notified", project_id=project.get("id"), recipients=len(emails))
    return result


async def notify_project_status_changed(
    project: Mapping[str, Any],
    *,
    new_status: str,
    changed_by: str,
    comment: str | None = None,
) -> bool:
    """Notify the seller that owns the project about a status change."""

    owner_id = project.get("created_by_user_id")
    project_name = str(project.get("cliente_condominio_nome") or "")
    label = STATUS_LABELS.get(new_status, new_status)
    if owner_id is not None:
        await notifications_repo.create_notification(
            user_id=int(owner_id),
            kind="PROJECT_STATUS_CHANGED",
            title=f"Projeto {label}",
            message=f'O projeto "{project_name}" foi alterado para {label} por {changed_by}',
            entity_type="project",
            entity_id=project.get("id"),
        )

    recipient = project.get("vendedor_email")
    if not recipient:
        return False
    pending = new_status == "PENDENTE_INFO"
    subject = (
        f'Ação Necessária: Projeto "{project_name}" requer informações'
        if pending
        else f'Atualização: Projeto "{project_name}" - {label}'
    )
    html_body = (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h1>Atualização de Projeto</h1>"
        f"<p>Olá <strong>{escape(str(project.get('vendedor_nome') or ''))}</strong>,</p>"
        f"<p>O projeto <strong>\"{escape(project_name)}\"</strong> teve seu status alterado:</p>"
        f"<p><strong>{escape(label)}</strong></p>"
        f"<p>Alterado por: {escape(changed_by)}</p>"
    )
    if pending and comment:
        html_body += (
            f"<p><strong>Informações Pendentes:</strong></p><p>{escape(comment)}</p>"
            "<p>Por favor, acesse o sistema para fornecer as informações solicitadas.</p>"
        )
    html_body += (
        f'<p><a href="{escape(_project_link(int(project.get("id") or 0)))}">Ver Projeto</a></p></div>'
    )
    try:
        return await email_service.send_email(
            subject=subject,
            recipients=[str(recipient)],
            html_body=html_body,
            text_body="Atualização de projeto",
        )
    except email_service.EmailDispatchError as exc:
        log_error("Project status email failed", project_id=project.get("id"), error=str(exc))
        return False


async def notify_engineering_status(project: Mapping[str, Any], *, engineering_status: str) -> None:
    owner_id = project.get("created_by_user_id")
    if owner_id is None:
        return
    label = ENGINEERING_STATUS_LABELS.get(engineering_status, engineering_status)
    await notifications_repo.create_notification(
        user_id=int(owner_id),
        kind="ENGINEERING_STATUS_CHANGED",
        title=f"Engenharia: {label}",
        message=f'O projeto "{project.get("cliente_condominio_nome")}" está {label} na engenharia',
        entity_type="project",
        entity_id=project.get("id"),
    )


async def notify_preventive_due(schedule: Mapping[str, Any]) -> int:
    """Notify the supervisor (or every operations supervisor) of an upcoming visit."""

    supervisor_id = schedule.get("supervisor_responsavel_id")
    if supervisor_id is not None:
        recipients = [int(supervisor_id)]
    else:
        recipients = [user["id"] for user in await user_repo.list_users(role="supervisor_operacoes")]
    if not recipients:
        return 0
    due = schedule.get("proxima_execucao")
    return await notifications_repo.create_for_users(
        recipients,
        kind="PREVENTIVA_PROXIMA",
        title="Manutenção preventiva próxima",
        message=(
            f"A preventiva de {schedule.get('razao_social')} (contrato {schedule.get('contrato')}) "
            f"está agendada para {due}"
        ),
        entity_type="preventive_schedule",
        entity_id=schedule.get("id"),
    )
