from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from emive_portal.core.logging import log_info
from emive_portal.repositories import projects as project_repo
from emive_portal.repositories import sale_forms as sale_form_repo
from emive_portal.services import project_workflow

REQUIRED_FIELDS: dict[str, str] = {
    "nome_condominio": "Nome do Condomínio",
    "filial": "Filial",
    "produto": "Produto",
    "qtd_apartamentos": "Qtd. Apartamentos",
}

FIELD_LABELS: dict[str, str] = {
    "nome_condominio": "Nome do Condomínio",
    "filial": "Filial",
    "vendedor_nome": "Vendedor",
    "vendedor_email": "Email do Vendedor",
    "qtd_apartamentos": "Qtd. Apartamentos",
    "qtd_blocos": "Qtd. Blocos",
    "produto": "Produto",
    "acesso_local_central_portaria": "Acesso ao Local da Central",
    "cabo_metros_qdg_ate_central": "Metros de Cabo QDG→Central",
    "internet_exclusiva": "Internet Exclusiva",
    "obs_central_portaria_qdg": "Obs. Central/QDG",
    "transbordo_para_apartamentos": "Transbordo para Apartamentos",
    "local_central_interfonia_descricao": "Local Central de Interfonia",
    "qtd_portas_pedestre": "Portas Pedestre",
    "qtd_portas_bloco": "Portas Bloco",
    "qtd_saida_autenticada": "Saídas Autenticadas",
    "obs_portas": "Obs. Portas",
    "qtd_portoes_deslizantes": "Portões Deslizantes",
    "qtd_portoes_pivotantes": "Portões Pivotantes",
    "qtd_portoes_basculantes": "Portões Basculantes",
    "metodo_acionamento_portoes": "Método de Acionamento",
    "qtd_dvrs_aproveitados": "DVRs Aproveitados",
    "marca_modelo_dvr_aproveitado": "Marca/Modelo DVR",
    "qtd_cameras_aproveitadas": "Câmeras Aproveitadas",
    "cftv_novo_qtd_dvr_4ch": "DVR Novo 4ch",
    "cftv_novo_qtd_dvr_8ch": "DVR Novo 8ch",
    "cftv_novo_qtd_dvr_16ch": "DVR Novo 16ch",
    "cftv_novo_qtd_total_cameras": "Total Câmeras Novas",
    "qtd_cameras_elevador": "Câmeras de Elevador",
    "acessos_tem_camera_int_ext": "Câmera Int/Ext nos Acessos",
    "alarme_tipo": "Tipo de Alarme",
    "iva_central_alarme_tipo": "Central Alarme (IVA)",
    "iva_qtd_pares_existentes": "Pares Existentes (IVA)",
    "iva_qtd_novos": "IVAs Novos",
    "iva_qtd_cabo_blindado": "Cabo Blindado (IVA)",
    "cerca_central_alarme_tipo": "Central Alarme (Cerca)",
    "cerca_qtd_cabo_centenax": "Cabo Centenax (Cerca)",
    "cerca_local_central_choque": "Local Central de Choque",
    "cerca_metragem_linear_total": "Metragem Linear Total",
    "cerca_qtd_fios": "Qtd. Fios (Cerca)",
    "possui_cancela": "Possui Cancela",
    "cancela_qtd_sentido_unico": "Cancelas Sentido Único",
    "cancela_qtd_duplo_sentido": "Cancelas Duplo Sentido",
    "cancela_aproveitada_detalhes": "Detalhes Cancela Aproveitada",
    "cancela_autenticacao": "Autenticação Cancela",
    "possui_catraca": "Possui Catraca",
    "catraca_qtd_sentido_unico": "Catracas Sentido Único",
    "catraca_qtd_duplo_sentido": "Catracas Duplo Sentido",
    "catraca_aproveitada_detalhes": "Detalhes Catraca Aproveitada",
    "catraca_autenticacao": "Autenticação Catraca",
    "possui_totem": "Possui Totem",
    "totem_qtd_simples": "Totens Simples",
    "totem_qtd_duplo": "Totens Duplos",
    "modificacoes_projeto_final": "Modificações no Projeto Final",
    "obs_gerais": "Observações Gerais",
}

SECTIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Identificação", ("nome_condominio", "filial", "vendedor_nome", "vendedor_email", "qtd_apartamentos", "qtd_blocos", "produto")),
    ("Infraestrutura / Central", ("acesso_local_central_portaria", "cabo_metros_qdg_ate_central", "internet_exclusiva", "obs_central_portaria_qdg")),
    ("Telefonia / Interfonia", ("transbordo_para_apartamentos", "local_central_interfonia_descricao")),
    ("Portas", ("qtd_portas_pedestre", "qtd_portas_bloco", "qtd_saida_autenticada", "obs_portas")),
    ("Portões", ("qtd_portoes_deslizantes", "qtd_portoes_pivotantes", "qtd_portoes_basculantes", "metodo_acionamento_portoes")),
    ("CFTV Aproveitado", ("qtd_dvrs_aproveitados", "marca_modelo_dvr_aproveitado", "qtd_cameras_aproveitadas")),
    (
        "CFTV Novo",
        (
            "cftv_novo_qtd_dvr_4ch",
            "cftv_novo_qtd_dvr_8ch",
            "cftv_novo_qtd_dvr_16ch",
            "cftv_novo_qtd_total_cameras",
            "qtd_cameras_elevador",
            "acessos_tem_camera_int_ext",
        ),
    ),
    (
        "Alarme",
        (
            "alarme_tipo",
            "iva_central_alarme_tipo",
            "iva_qtd_pares_existentes",
            "iva_qtd_novos",
            "iva_qtd_cabo_blindado",
            "cerca_central_alarme_tipo",
            "cerca_qtd_cabo_centenax",
            "cerca_local_central_choque",
            "cerca_metragem_linear_total",
            "cerca_qtd_fios",
        ),
    ),
    (
        "Controle de Acesso",
        (
            "possui_cancela",
            "cancela_qtd_sentido_unico",
            "cancela_qtd_duplo_sentido",
            "cancela_aproveitada_detalhes",
            "cancela_autenticacao",
            "possui_catraca",
            "catraca_qtd_sentido_unico",
            "catraca_qtd_duplo_sentido",
            "catraca_aproveitada_detalhes",
            "catraca_autenticacao",
            "possui_totem",
            "totem_qtd_simples",
            "totem_qtd_duplo",
        ),
    ),
    ("Observações", ("modificacoes_projeto_final", "obs_gerais")),
)

ALARME_TIPO_LABELS = {"IVA": "IVA", "CERCA_ELETRICA": "Cerca Elétrica", "NENHUM": "Nenhum"}
METODO_ACIONAMENTO_LABELS = {
    "TAG_VEICULAR": "Tag Veicular",
    "CONTROLE": "Controle",
    "MULTIPLOS_ACIONAMENTOS": "Múltiplos Acionamentos",
    "FACIAL_PAREDE": "Facial na Parede",
    "FACIAL_TOTEM": "Facial de Totem",
}
INTERNET_EXCLUSIVA_LABELS = {"SIM": "Sim", "NAO": "Não", "A_CONTRATAR": "A Contratar"}
CENTRAL_ALARME_LABELS = {"NOVA": "Nova", "APROVEITADA": "Aproveitada"}


class SaleFormError(ValueError):
    """Raised when a sale form cannot be started, edited or completed."""


class SaleFormLockedError(SaleFormError):
    pass


def format_value(field: str, value: Any) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, bool):
        return "Sim" if value else "Não"
    text = str(value)
    if field == "alarme_tipo":
        return ALARME_TIPO_LABELS.get(text, text)
    if field == "metodo_acionamento_portoes":
        return METODO_ACIONAMENTO_LABELS.get(text, text)
    if field == "internet_exclusiva":
        return INTERNET_EXCLUSIVA_LABELS.get(text, text)
    if "central_alarme_tipo" in field:
        return CENTRAL_ALARME_LABELS.get(text, text)
    return text


def _is_filled(value: Any) -> bool:
    return value not in (None, "", 0, False)


def build_summary(sale_form: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Group filled sale form fields into labelled sections.

    Empty strings, zero counts and unchecked flags are left out so the summary
    only carries what the seller actually recorded.
    """

    sections = []
    for title, fields in SECTIONS:
        items = [
            {"field": field, "label": FIELD_LABELS[field], "value": format_value(field, sale_form.get(field))}
            for field in fields
            if _is_filled(sale_form.get(field))
        ]
        if items:
            sections.append({"title": title, "items": items})
    return sections


def missing_required_fields(sale_form: Mapping[str, Any]) -> list[str]:
    missing = []
    for field, label in REQUIRED_FIELDS.items():
        value = sale_form.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(label)
    return missing


def is_locked(project: Mapping[str, Any], sale_form: Mapping[str, Any] | None) -> bool:
    if project.get("sale_status") == "CONCLUIDO":
        return True
    return bool(sale_form and sale_form.get("completed_at"))


def _ensure_owner(project: Mapping[str, Any], user: Mapping[str, Any]) -> None:
    if user.get("role") == "admin":
        return
    if project.get("created_by_user_id") != user.get("id"):
        raise PermissionError("Only the project's seller may fill the sale form")


async def start_sale_form(project: Mapping[str, Any], user: Mapping[str, Any]) -> dict[str, Any]:
    _ensure_owner(project, user)
    if not project_workflow.can_start_sale_form(project):
        raise SaleFormError("Sale form can only start after engineering completes the project")
    existing = await sale_form_repo.get_sale_form(project["id"])
    sale_form = existing or await sale_form_repo.create_sale_form(
        project_id=project["id"],
        vendedor_nome=project.get("vendedor_nome"),
        vendedor_email=project.get("vendedor_email"),
        nome_condominio=project.get("cliente_condominio_nome"),
    )
    await project_repo.update_project(project["id"], sale_status="EM_ANDAMENTO")
    log_info("Sale form started", project_id=project["id"], user_id=user.get("id"))
    return sale_form


async def save_sale_form(
    project: Mapping[str, Any], user: Mapping[str, Any], fields: Mapping[str, Any]
) -> dict[str, Any]:
    _ensure_owner(project, user)
    sale_form = await sale_form_repo.get_sale_form(project["id"])
    if not sale_form or project.get("sale_status") == "NAO_INICIADO":
        raise SaleFormError("Sale form has not been started")
    if is_locked(project, sale_form):
        raise SaleFormLockedError("Sale form is completed and can no longer be edited")
    return await sale_form_repo.update_sale_form(project["id"], **dict(fields))


async def complete_sale_form(
    project: Mapping[str, Any], user: Mapping[str, Any], fields: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    _ensure_owner(project, user)
    sale_form = await sale_form_repo.get_sale_form(project["id"])
    if not sale_form:
        raise SaleFormError("Sale form has not been started")
    if is_locked(project, sale_form):
        raise SaleFormLockedError("Sale form is already completed")
    merged = {**sale_form, **dict(fields or {})}
    missing = missing_required_fields(merged)
    if missing:
        raise SaleFormError(f"Missing required fields: {', '.join(missing)}")
    completed = await sale_form_repo.update_sale_form(
        project["id"], **dict(fields or {}), completed_at=datetime.utcnow()
    )
    await project_repo.update_project(project["id"], sale_status="CONCLUIDO")
    log_info("Sale form completed", project_id=project["id"], user_id=user.get("id"))
    return completed
