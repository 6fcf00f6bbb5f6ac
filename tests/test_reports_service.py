from datetime import date, datetime

from emive_portal.services import reports as report_service

NOW = datetime(2024, 2, 15, 10, 0)


def test_resolve_period_days_back():
    start, end = report_service.resolve_period("7", now=NOW)

    assert start == datetime(2024, 2, 8, 10, 0)
    assert end == NOW


def test_resolve_period_current_month_covers_whole_month():
    start, end = report_service.resolve_period("mes_atual", now=NOW)

    assert start == datetime(2024, 2, 1)
    assert end.date() == date(2024, 2, 29)
    assert end.hour == 23


def test_resolve_period_custom_range_is_inclusive():
    start, end = report_service.resolve_period(
        "custom", data_inicio=date(2024, 1, 1), data_fim=date(2024, 1, 31), now=NOW
    )

    assert start == datetime(2024, 1, 1, 0, 0)
    assert end == datetime(2024, 1, 31, 23, 59, 59)


def test_resolve_period_falls_back_to_thirty_days():
    for periodo in ("custom", "abc", None, "0"):
        start, end = report_service.resolve_period(periodo, now=NOW)
        assert (end - start).days == 30


def test_engineering_figures_and_average_turnaround():
    start, end = datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59, 59)
    projects = [
        {
            "created_at": datetime(2024, 1, 2),
            "engineering_received_at": datetime(2024, 1, 3),
            "engineering_completed_at": datetime(2024, 1, 5, 12, 0),
        },
        {
            "created_at": datetime(2023, 12, 20),
            "engineering_received_at": datetime(2023, 12, 21),
            "engineering_completed_at": datetime(2024, 1, 10),
        },
        {
            "created_at": datetime(2024, 1, 20),
            "engineering_received_at": datetime(2024, 1, 21),
            "engineering_completed_at": None,
        },
    ]

    figures = report_service.engineering_figures(projects, start, end)

    assert figures == {"recebidos": 2, "abertos": 2, "concluidos": 2, "tempo_medio_dias": 11}


def test_engineering_report_without_completions_has_no_average():
    start, end = datetime(2024, 1, 1), datetime(2024, 1, 31)
    report = report_service.engineering_report(
        [], [{"id": 4, "nome": "Paulo"}], start, end
    )

    assert report["totais"]["tempo_medio_dias"] is None
    assert report["projetistas"] == [
        {"id": 4, "nome": "Paulo", "recebidos": 0, "abertos": 0, "concluidos": 0, "tempo_medio_dias": None}
    ]


def test_maintenance_report_groups_tickets_in_period():
    start, end = datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59)
    tickets = [
        {"status": "CONCLUIDO", "tipo": "PREVENTIVO", "praca": "BH", "data_agendada": datetime(2024, 3, 2)},
        {"status": "AGENDADO", "tipo": "CORRETIVO", "praca": None, "data_agendada": datetime(2024, 3, 20)},
        {"status": "AGENDADO", "tipo": "CORRETIVO", "praca": "BH", "data_agendada": datetime(2024, 4, 2)},
    ]

    report = report_service.maintenance_report(tickets, start, end)

    assert report["total"] == 2
    assert report["por_status"] == {"CONCLUIDO": 1, "AGENDADO": 1}
    assert report["por_tipo"] == {"PREVENTIVO": 1, "CORRETIVO": 1}
    assert report["por_praca"] == {"BH": 1, "Sem praça": 1}
