"""Status vocabularies and transition rules for project intake and engineering.

Everything here is pure so the rules can be exercised without a database.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

STATUS_LABELS: dict[str, str] = {
    "RASCUNHO": "Rascunho",
    "ENVIADO": "Enviado",
    "EM_ANALISE": "Em Análise",
    "PENDENTE_INFO": "Pendente Info",
    "APROVADO_PROJETO": "Aprovado",
    "RECUSADO": "Recusado",
    "CANCELADO": "Cancelado",
}

ENGINEERING_STATUS_LABELS: dict[str, str] = {
    "EM_RECEBIMENTO": "Em Recebimento",
    "EM_PRODUCAO": "Em Produção",
    "RETORNAR": "Retornar",
    "CONCLUIDO": "Concluído",
}

SALE_STATUS_LABELS: dict[str, str] = {
    "NAO_INICIADO": "Não Iniciado",
    "EM_ANDAMENTO": "Em Andamento",
    "CONCLUIDO": "Concluído",
}

IMPLANTACAO_STATUS_LABELS: dict[str, str] = {
    "A_EXECUTAR": "A Executar",
    "EM_EXECUCAO": "Em Execução",
    "CONCLUIDO_IMPLANTACAO": "Concluído",
}

PROJECT_TRANSITIONS: dict[str, frozenset[str]] = {
    "RASCUNHO": frozenset({"ENVIADO", "CANCELADO"}),
    "ENVIADO": frozenset({"EM_ANALISE", "PENDENTE_INFO", "CANCELADO"}),
    "EM_ANALISE": frozenset({"PENDENTE_INFO", "APROVADO_PROJETO", "RECUSADO", "CANCELADO"}),
    "PENDENTE_INFO": frozenset({"ENVIADO", "CANCELADO"}),
    "APROVADO_PROJETO": frozenset(),
    "RECUSADO": frozenset(),
    "CANCELADO": frozenset(),
}

ENGINEERING_TRANSITIONS: dict[str, frozenset[str]] = {
    "EM_RECEBIMENTO": frozenset({"EM_PRODUCAO", "RETORNAR"}),
    "EM_PRODUCAO": frozenset({"CONCLUIDO", "RETORNAR"}),
    "RETORNAR": frozenset({"EM_PRODUCAO"}),
    "CONCLUIDO": frozenset(),
}

EDITABLE_STATUSES = frozenset({"RASCUNHO", "PENDENTE_INFO"})
SUBMITTABLE_STATUSES = EDITABLE_STATUSES

TRACKED_PROJECT_FIELDS: dict[str, str] = {
    "cliente_condominio_nome": "Nome do Condomínio",
    "cliente_cidade": "Cidade",
    "cliente_estado": "Estado",
    "endereco_condominio": "Endereço",
    "prazo_entrega_projeto": "Prazo de Entrega",
    "data_assembleia": "Data da Assembleia",
}

TRACKED_TAP_FIELDS: dict[str, str] = {
    "portaria_virtual_atendimento_app": "Portaria Virtual (App)",
    "numero_blocos": "Número de Blocos",
    "interfonia": "Interfonia",
    "controle_acessos_pedestre_descricao": "Controle de Acesso Pedestre",
    "controle_acessos_veiculo_descricao": "Controle de Acesso Veículo",
    "alarme_descricao": "Alarme",
    "cftv_dvr_descricao": "CFTV/DVR",
    "cftv_elevador_possui": "CFTV Elevador",
    "marcacao_croqui_confirmada": "Marcação no Croqui",
    "info_custo": "Informações de Custo",
    "info_cronograma": "Cronograma",
    "info_adicionais": "Informações Adicionais",
}


class StatusTransitionError(ValueError):
    """Raised when a project or engineering status change is not allowed."""


def ensure_project_transition(current: str, target: str) -> None:
    allowed = PROJECT_TRANSITIONS.get(current)
    if allowed is None:
        raise StatusTransitionError(f"Unknown project status {current}")
    if target not in STATUS_LABELS:
        raise StatusTransitionError(f"Unknown project status {target}")
    if target not in allowed:
        raise StatusTransitionError(
            f"Cannot change project status from {current} to {target}"
        )


def ensure_engineering_transition(current: str | None, target: str) -> None:
    if target not in ENGINEERING_STATUS_LABELS:
        raise StatusTransitionError(f"Unknown engineering status {target}")
    if current is None:
        raise StatusTransitionError("Project has not been received by engineering")
    allowed = ENGINEERING_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise StatusTransitionError(
            f"Cannot change engineering status from {current} to {target}"
        )


def engineering_timestamp_field(target: str) -> str | None:
    return {
        "EM_RECEBIMENTO": "engineering_received_at",
        "EM_PRODUCAO": "engineering_production_at",
        "CONCLUIDO": "engineering_completed_at",
    }.get(target)


def can_start_sale_form(project: Mapping[str, Any]) -> bool:
    return (
        project.get("engineering_status") == "CONCLUIDO"
        and project.get("sale_status", "NAO_INICIADO") == "NAO_INICIADO"
    )


def _comparable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    return value


def build_resubmission_snapshot(
    project: Mapping[str, Any], tap_form: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Capture the fields a seller may change while the project is pending."""

    snapshot: dict[str, Any] = {
        field: _comparable(project.get(field)) for field in TRACKED_PROJECT_FIELDS
    }
    if tap_form:
        snapshot["tap_form"] = {
            field: _comparable(tap_form.get(field)) for field in TRACKED_TAP_FIELDS
        }
    return snapshot


def detect_changed_fields(
    snapshot: Mapping[str, Any] | None,
    project: Mapping[str, Any],
    tap_form: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """List fields that differ between the pre-resubmission snapshot and now.

    A project field only counts when the snapshot recorded it. TAP fields are
    compared only when both the snapshot and the current project carry a TAP
    form.
    """

    if not snapshot:
        return []
    changes: list[dict[str, Any]] = []
    for field, label in TRACKED_PROJECT_FIELDS.items():
        if field not in snapshot:
            continue
        before = _comparable(snapshot.get(field))
        after = _comparable(project.get(field))
        if before != after:
            changes.append({"field": field, "label": label, "before": before, "after": after})

    tap_snapshot = snapshot.get("tap_form")
    if tap_snapshot and tap_form:
        for field, label in TRACKED_TAP_FIELDS.items():
            before = _comparable(tap_snapshot.get(field))
            after = _comparable(tap_form.get(field))
            if before != after:
                changes.append(
                    {"field": f"tap_form.{field}", "label": label, "before": before, "after": after}
                )
    return changes
