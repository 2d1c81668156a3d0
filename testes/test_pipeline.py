#!/usr/bin/env python3
"""
End-to-end tests for services/pipeline.py

Usage:
    python3 testes/test_pipeline.py

What it tests:
1. Single-order scenario: total 40 + 10 -> high ticket at 50, not at 51
2. Full run over all four tables (new leads, inactive, geographic, products)
3. A table with missing columns fails alone; the rest of the run continues
4. Async run (processors in threads) matches the sync run
5. Analysis-period window and months_before
"""
import asyncio
import sys
from datetime import datetime

from _harness import run, section, summary

from zapinteligencia.models.records import RawTable, TableKind
from zapinteligencia.services.aggregation import high_ticket_customers
from zapinteligencia.services.pipeline import (
    RunContext,
    months_before,
    run_pipeline,
    run_pipeline_async,
)

NOW = datetime(2024, 3, 1, 12, 0)


def _tables() -> dict[TableKind, RawTable]:
    contacts = RawTable.from_rows([
        {"First Name": "LT_01 Ana", "Phone 1 - Value": "+55 19 99999-1111"},
        {"First Name": "Bruno", "Phone 1 - Value": "(19) 98888-2222"},
    ], source="contacts.csv")
    customers = RawTable.from_rows([
        {"Nome": "Ana Souza", "Fone Principal": "5519999991111", "Bairro": "Centro", "Qtd. Pedidos": "3"},
        {"Nome": "Bruno Lima", "Fone Principal": "19988882222", "Bairro": "Fontanela", "Qtd. Pedidos": "1"},
        {"Nome": "Carla Dias", "Fone Principal": "19977773333", "Bairro": "Fontanela", "Qtd. Pedidos": "8"},
        {"Nome": "-", "Fone Principal": "19966664444", "Bairro": "", "Qtd. Pedidos": ""},
    ], source="Lista-Clientes.xlsx")
    orders = RawTable.from_rows([
        {"Código": "1", "Cliente": "Ana", "Telefone": "5519999991111", "Total": "40",
         "Valor Entrega": "10", "Data Fechamento": "25/02/2024", "Bairro": "Centro"},
        {"Código": "2", "Cliente": "Carla", "Telefone": "19977773333", "Total": "90",
         "Valor Entrega": "10", "Data Fechamento": "01/12/2023", "Bairro": "Fontanela"},
        {"Código": "3", "Cliente": "Carla", "Telefone": "19977773333", "Total": "70",
         "Valor Entrega": "10", "Data Fechamento": "15/12/2023", "Bairro": "Fontanela"},
        {"Código": "4", "Cliente": "Mesa 5", "Telefone": "", "Total": "30",
         "Valor Entrega": "", "Data Fechamento": "15/12/2023", "Bairro": ""},
    ], source="Todos os pedidos.xlsx")
    items = RawTable.from_rows([
        {"Cod. Ped.": "1", "Nome Prod": "Balde", "Cat. Prod.": "Frango", "Qtd.": "1", "Valor Tot. Item": "40"},
        {"Cod. Ped.": "2", "Nome Prod": "Balde", "Cat. Prod.": "Frango", "Qtd.": "2", "Valor Tot. Item": "80"},
        {"Cod. Ped.": "3", "Nome Prod": "Refri", "Cat. Prod.": "Bebidas", "Qtd.": "4", "Valor Tot. Item": "24"},
        {"Cod. Ped.": "99", "Nome Prod": "Órfão", "Cat. Prod.": "X", "Qtd.": "9", "Valor Tot. Item": "9"},
    ], source="Historico_Itens_Vendidos.xlsx")
    return {
        TableKind.CONTACTS: contacts,
        TableKind.CUSTOMERS: customers,
        TableKind.ORDERS: orders,
        TableKind.ORDER_ITEMS: items,
    }


# ── 1. Single order ───────────────────────────────────────────────────────────


def test_single_order_scenario() -> None:
    orders = RawTable.from_rows([{
        "Cliente": "A", "Telefone": "(11)99999-1111", "Total": "40",
        "Valor Entrega": "10", "Data Fechamento": "01/01/2024",
    }])
    report = run_pipeline({TableKind.ORDERS: orders}, RunContext(now=NOW))
    assert len(report.orders) == 1
    assert report.orders[0].total_amount == 50.0
    assert report.orders[0].normalized_phone == "11999991111"
    assert [c.phone for c in report.high_ticket_customers] == ["11999991111"]
    assert high_ticket_customers(report.orders, 51) == []
    # no contacts/customers tables -> no new leads
    assert report.new_leads == []


# ── 2. Full run ───────────────────────────────────────────────────────────────


def test_full_run() -> None:
    report = run_pipeline(_tables(), RunContext(now=NOW, inactive_days=30, min_ticket=50.0))
    assert report.ok

    # Carla is the only customer not in contacts with a usable name
    assert [lead.name for lead in report.new_leads] == ["LT_01 Carla"]
    assert report.new_leads[0].whatsapp_phone == "5519977773333"

    # Carla's last order is 15/12/2023 -> 77 days before NOW
    assert [c.phone for c in report.inactive_customers] == ["19977773333"]
    carla = report.inactive_customers[0]
    assert carla.days_inactive == 77
    assert carla.first_name == "Carla"
    assert carla.neighborhood == "fontanella"
    assert carla.customer_order_count == 8

    # Averages: Carla 90, Ana 50
    assert [c.phone for c in report.high_ticket_customers] == ["19977773333", "5519999991111"]

    top = report.geographic.top_by_revenue[0]
    assert top.neighborhood == "fontanella" and top.total_revenue == 180.0 and top.unique_customers == 1

    assert [p.product_name for p in report.preferences.top_products] == ["Refri", "Balde"]
    assert report.tables[TableKind.ORDERS].rows_dropped == 1
    assert report.lead_summary["new_leads"] == 1
    assert report.lead_summary["contacts_opt_in"] == 1


# ── 3. Failures ───────────────────────────────────────────────────────────────


def test_failed_table_does_not_stop_run() -> None:
    tables = _tables()
    tables[TableKind.CUSTOMERS] = RawTable.from_rows([{"Nome": "Ana", "Obs": "?"}], source="Lista-Clientes.xlsx")
    report = run_pipeline(tables, RunContext(now=NOW))
    assert not report.ok
    assert report.failures[0].table is TableKind.CUSTOMERS
    assert report.tables[TableKind.CUSTOMERS].ok is False
    assert report.new_leads == []
    assert len(report.orders) == 3
    # no customer lookup -> rows keep defaults
    assert report.inactive_customers[0].first_name == ""


# ── 4. Async ──────────────────────────────────────────────────────────────────


def test_async_matches_sync() -> None:
    context = RunContext(now=NOW)
    sync_report = run_pipeline(_tables(), context)
    async_report = asyncio.run(run_pipeline_async(_tables(), context))
    assert async_report.model_dump() == sync_report.model_dump()


# ── 5. Period ─────────────────────────────────────────────────────────────────


def test_months_before() -> None:
    assert months_before(datetime(2024, 3, 31), 1) == datetime(2024, 2, 29)
    assert months_before(datetime(2024, 1, 15), 2) == datetime(2023, 11, 15)
    assert months_before(datetime(2024, 6, 30), 6) == datetime(2023, 12, 30)


def test_analysis_period_limits_reports() -> None:
    # One month back from 01/03/2024: only Ana's February order is in the window
    report = run_pipeline(_tables(), RunContext(now=NOW, analysis_period_months=1))
    assert [c.phone for c in report.high_ticket_customers] == ["5519999991111"]
    assert [s.neighborhood for s in report.geographic.per_neighborhood] == ["centro"]
    # inactivity still looks at every order
    assert [c.phone for c in report.inactive_customers] == ["19977773333"]


# ── Main ──────────────────────────────────────────────────────────────────────


def main() -> None:
    print()
    print("=" * 65)
    print("  ZapInteligência - Pipeline")
    print("=" * 65)

    section("Scenarios")
    run(test_single_order_scenario, test_full_run, test_failed_table_does_not_stop_run)

    section("Async / Period")
    run(test_async_matches_sync, test_months_before, test_analysis_period_limits_reports)

    sys.exit(summary())


if __name__ == "__main__":
    main()
