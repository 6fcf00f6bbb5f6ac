from datetime import date, datetime

import pytest

from emive_portal.services import project_workflow
from emive_portal.services.project_workflow import StatusTransitionError


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("RASCUNHO", "ENVIADO"),
        ("ENVIADO", "EM_ANALISE"),
        ("EM_ANALISE", "APROVADO_PROJETO"),
        ("EM_ANALISE", "PENDENTE_INFO"),
        ("PENDENTE_INFO", "ENVIADO"),
    ],
)
def test_allowed_project_transitions(current, target):
    project_workflow.ensure_project_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("RASCUNHO", "APROVADO_PROJETO"),
        ("APROVADO_PROJETO", "ENVIADO"),
        ("CANCELADO", "RASCUNHO"),
        ("ENVIADO", "DESCONHECIDO"),
    ],
)
def test_rejected_project_transitions(current, target):
    with pytest.raises(StatusTransitionError):
        project_workflow.ensure_project_transition(current, target)


def test_engineering_requires_reception_first():
    with pytest.raises(StatusTransitionError):
        project_workflow.ensure_engineering_transition(None, "EM_PRODUCAO")


def test_engineering_return_goes_back_to_production():
    project_workflow.ensure_engineering_transition("EM_PRODUCAO", "RETORNAR")
    project_workflow.ensure_engineering_transition("RETORNAR", "EM_PRODUCAO")
    with pytest.raises(StatusTransitionError):
        project_workflow.ensure_engineering_transition("CONCLUIDO", "EM_PRODUCAO")


def test_engineering_timestamp_fields():
    assert project_workflow.engineering_timestamp_field("EM_PRODUCAO") == "engineering_production_at"
    assert project_workflow.engineering_timestamp_field("RETORNAR") is None


def test_sale_form_starts_only_after_engineering_completes():
    assert project_workflow.can_start_sale_form({"engineering_status": "CONCLUIDO"})
    assert not project_workflow.can_start_sale_form(
        {"engineering_status": "CONCLUIDO", "sale_status": "EM_ANDAMENTO"}
    )
    assert not project_workflow.can_start_sale_form({"engineering_status": "EM_PRODUCAO"})


def test_detect_changed_fields_after_resubmission():
    project = {
        "cliente_condominio_nome": "Residencial Sol",
        "cliente_cidade": "Belo Horizonte",
        "prazo_entrega_projeto": date(2024, 5, 10),
    }
    tap_form = {"numero_blocos": 2, "interfonia": "Sim"}
    snapshot = project_workflow.build_resubmission_snapshot(project, tap_form)

    changed_project = {
        **project,
        "cliente_cidade": "Contagem",
        "prazo_entrega_projeto": datetime(2024, 5, 10, 15, 0),
    }
    changed_tap = {**tap_form, "numero_blocos": 3}

    changes = project_workflow.detect_changed_fields(snapshot, changed_project, changed_tap)

    assert [change["field"] for change in changes] == ["cliente_cidade", "tap_form.numero_blocos"]
    assert changes[0] == {
        "field": "cliente_cidade",
        "label": "Cidade",
        "before": "Belo Horizonte",
        "after": "Contagem",
    }


def test_detect_changed_fields_without_snapshot():
    assert project_workflow.detect_changed_fields(None, {"cliente_cidade": "X"}) == []


def test_blank_strings_compare_equal_to_missing_values():
    snapshot = project_workflow.build_resubmission_snapshot({"cliente_estado": None}, None)

    assert project_workflow.detect_changed_fields(snapshot, {"cliente_estado": ""}) == []
