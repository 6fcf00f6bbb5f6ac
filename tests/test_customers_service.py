from datetime import date
from decimal import Decimal

import pytest

from emive_portal.services import customers as customer_service


def _customer(**overrides):
    base = {
        "id": 1,
        "contrato": "C-100",
        "razao_social": "Condomínio Alfa",
        "filial": "BH",
        "data_ativacao": date(2023, 1, 31),
        "data_termino": None,
        "taxa_ativacao": None,
        "mensalidade": Decimal("1500.00"),
        "portoes": 2,
        "zonas_perimetro": 0,
        "cameras": 8,
    }
    base.update(overrides)
    return base


def test_termination_date_defaults_to_activation_plus_36_months():
    customer = _customer(data_ativacao=date(2023, 1, 31))

    assert customer_service.termination_date(customer) == date(2026, 1, 31)


def test_termination_date_prefers_explicit_value():
    customer = _customer(data_termino=date(2025, 6, 30))

    assert customer_service.termination_date(customer) == date(2025, 6, 30)


def test_termination_date_missing_without_activation():
    customer = _customer(data_ativacao=None)

    assert customer_service.termination_date(customer) is None


def test_search_matches_name_contract_and_branch_case_insensitively():
    rows = [
        _customer(id=1, razao_social="Residencial Sol"),
        _customer(id=2, contrato="XPTO-9", razao_social="Edifício Lua"),
        _customer(id=3, filial="VIX", razao_social="Torre Norte"),
    ]

    assert [row["id"] for row in customer_service.apply_filters(rows, search="sol")] == [1]
    assert [row["id"] for row in customer_service.apply_filters(rows, search="xpto")] == [2]
    assert [row["id"] for row in customer_service.apply_filters(rows, search="vix")] == [3]


def test_optional_number_filter_matches_dash_for_empty_values():
    rows = [_customer(id=1, taxa_ativacao=None), _customer(id=2, taxa_ativacao=Decimal("250"))]

    filtered = customer_service.apply_filters(rows, column_filters={"taxa_ativacao": "-"})

    assert [row["id"] for row in filtered] == [1]


def test_date_filter_uses_formatted_termination_date():
    rows = [_customer(id=1, data_ativacao=date(2023, 1, 31)), _customer(id=2, data_ativacao=date(2024, 5, 1))]

    filtered = customer_service.apply_filters(rows, column_filters={"data_termino": "31/01/2026"})

    assert [row["id"] for row in filtered] == [1]


def test_unknown_filter_column_is_rejected():
    with pytest.raises(ValueError):
        customer_service.apply_filters([_customer()], column_filters={"senha": "x"})


def test_sort_is_case_insensitive_and_supports_descending():
    rows = [
        _customer(id=1, razao_social="beta"),
        _customer(id=2, razao_social="Alfa"),
        _customer(id=3, razao_social="Gama"),
    ]

    ascending = customer_service.sort_customers(rows, "razao_social", "asc")
    descending = customer_service.sort_customers(rows, "razao_social", "desc")

    assert [row["id"] for row in ascending] == [2, 1, 3]
    assert [row["id"] for row in descending] == [3, 1, 2]


def test_sort_state_cycles_through_unsorted():
    state = customer_service.next_sort_state(None, None, "contrato")
    assert state == ("contrato", "asc")
    state = customer_service.next_sort_state(*state, "contrato")
    assert state == ("contrato", "desc")
    state = customer_service.next_sort_state(*state, "contrato")
    assert state == (None, None)


def test_paginate_reports_has_more():
    rows = [{"id": index} for index in range(25)]

    first = customer_service.paginate(rows, 1, 10)
    last = customer_service.paginate(rows, 3, 10)

    assert first["total"] == 25
    assert first["has_more"] is True
    assert [row["id"] for row in last["items"]] == list(range(20, 25))
    assert last["has_more"] is False


def test_distinct_branch_values_use_dash_for_missing():
    rows = [_customer(filial="BH"), _customer(filial=None), _customer(filial="BH")]

    assert customer_service.distinct_values(rows, "filial") == ["-", "BH"]
