#!/usr/bin/env python3
"""
Tests for services/report_writer.py

Usage:
    python3 testes/test_report_writer.py

What it tests:
1. New leads CSV in Google Contacts import format
2. XLSX reports (bold header, values, rounding)
3. Geographic sheet lists every neighborhood; per-customer category sheet
4. write_reports skips empty reports

Files are written to a temporary directory.
"""
import sys
import tempfile
from datetime import datetime
from pathlib import Path

from _harness import run, section, summary
from openpyxl import load_workbook

from zapinteligencia.models.records import RawTable, TableKind
from zapinteligencia.services.pipeline import RunContext, run_pipeline
from zapinteligencia.services.report_writer import (
    REPORT_TABLES,
    customer_categories_table,
    geographic_table,
    high_ticket_table,
    write_new_leads_csv,
    write_reports,
    write_xlsx,
)

NOW = datetime(2024, 3, 1, 12, 0)


def _report():
    customers = RawTable.from_rows([
        {"Nome": "Carla Dias", "Fone Principal": "19977773333", "Bairro": "Centro"},
        {"Nome": "Davi", "Fone Principal": "19966664444", "Bairro": "Centro"},
    ])
    contacts = RawTable.from_rows([{"First Name": "Davi", "Phone 1 - Value": "19966664444"}])
    orders = RawTable.from_rows([
        {"Código": "1", "Telefone": "19977773333", "Total": "33,333", "Data Fechamento": "01/12/2023", "Bairro": "Centro"},
        {"Código": "2", "Telefone": "19977773333", "Total": "100", "Data Fechamento": "02/12/2023", "Bairro": "Centro"},
    ])
    items = RawTable.from_rows([{"Cod. Ped.": "1", "Nome Prod": "Balde", "Cat. Prod.": "Frango", "Qtd.": "1", "Valor Tot. Item": "33,333"}])
    return run_pipeline(
        {
            TableKind.CUSTOMERS: customers,
            TableKind.CONTACTS: contacts,
            TableKind.ORDERS: orders,
            TableKind.ORDER_ITEMS: items,
        },
        RunContext(now=NOW),
    )


# ── 1. CSV ────────────────────────────────────────────────────────────────────


def test_new_leads_csv() -> None:
    report = _report()
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "leads.csv"
        assert write_new_leads_csv(report, path)
        text = path.read_text(encoding="utf-8-sig")
    lines = text.strip().splitlines()
    assert lines[0] == "Name,Phone 1 - Value"
    assert lines[1] == "LT_01 Carla,19977773333"
    assert len(lines) == 2


def test_new_leads_csv_empty() -> None:
    report = run_pipeline({}, RunContext(now=NOW))
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "leads.csv"
        assert not write_new_leads_csv(report, path)
        assert not path.exists()


# ── 2. XLSX ───────────────────────────────────────────────────────────────────


def test_write_xlsx() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "t.xlsx"
        assert write_xlsx(["A", "B"], [["x", 1.5], ["yy", 2]], path, "Teste")
        ws = load_workbook(path).active
        assert ws.title == "Teste"
        assert ws["A1"].value == "A" and ws["A1"].font.bold
        assert ws["B2"].value == 1.5
        assert ws.max_row == 3
        assert not write_xlsx(["A"], [], Path(tmp) / "empty.xlsx", "Vazio")


def test_high_ticket_rounding() -> None:
    columns, rows = high_ticket_table(_report())
    assert columns[3] == "Ticket Médio"
    assert rows[0][3] == round((33.333 + 100) / 2, 2)
    assert rows[0][7] == "https://wa.me/5519977773333"


# ── 3. Geographic / preferences ───────────────────────────────────────────────


def test_geographic_table_lists_every_neighborhood() -> None:
    orders = RawTable.from_rows([
        {"Código": str(i), "Telefone": f"199999900{i:02d}", "Total": str(10 + i),
         "Data Fechamento": "01/12/2023", "Bairro": f"Bairro {i:02d}"}
        for i in range(15)
    ])
    report = run_pipeline({TableKind.ORDERS: orders}, RunContext(now=NOW))
    columns, rows = geographic_table(report)
    assert columns[0] == "Bairro"
    assert len(rows) == 15
    assert rows[0][0] == "bairro 14" and rows[0][1] == 24.0
    assert rows[-1][0] == "bairro 00"
    revenues = [row[1] for row in rows]
    assert revenues == sorted(revenues, reverse=True)
    with tempfile.TemporaryDirectory() as tmp:
        ws = load_workbook(write_reports(report, tmp)["analise_geografica"]).active
        assert ws.max_row == 16


def test_customer_categories_table() -> None:
    orders = RawTable.from_rows([
        {"Código": "1", "Telefone": "19977773333", "Total": "50"},
        {"Código": "2", "Telefone": "19966664444", "Total": "20"},
    ])
    items = RawTable.from_rows([
        {"Cod. Ped.": "1", "Nome Prod": "Balde", "Cat. Prod.": "Frango", "Qtd.": "1", "Valor Tot. Item": "40"},
        {"Cod. Ped.": "1", "Nome Prod": "Refri", "Cat. Prod.": "Bebidas", "Qtd.": "2", "Valor Tot. Item": "10"},
        {"Cod. Ped.": "2", "Nome Prod": "Molho", "Cat. Prod.": "Extras", "Qtd.": "1", "Valor Tot. Item": "20"},
    ])
    report = run_pipeline({TableKind.ORDERS: orders, TableKind.ORDER_ITEMS: items}, RunContext(now=NOW))
    columns, rows = customer_categories_table(report)
    assert columns == ["Telefone", "Posição", "Categoria", "Quantidade", "Faturamento"]
    assert rows == [
        ["19966664444", 1, "Extras", 1.0, 20.0],
        ["19977773333", 1, "Bebidas", 2.0, 10.0],
        ["19977773333", 2, "Frango", 1.0, 40.0],
    ]


# ── 4. write_reports ──────────────────────────────────────────────────────────


def test_write_reports() -> None:
    report = _report()
    with tempfile.TemporaryDirectory() as tmp:
        written = write_reports(report, tmp)
        assert set(written) == set(REPORT_TABLES)
        for path in written.values():
            assert path.exists()
            assert "20240301_120000" in path.name
        ws = load_workbook(written["clientes_inativos"]).active
        assert ws["A2"].value == "19977773333"
        assert ws["B2"].value == "Carla"


# ── Main ──────────────────────────────────────────────────────────────────────


def main() -> None:
    print()
    print("=" * 65)
    print("  ZapInteligência - Report Writer")
    print("=" * 65)

    section("CSV")
    run(test_new_leads_csv, test_new_leads_csv_empty)

    section("XLSX")
    run(test_write_xlsx, test_high_ticket_rounding)

    section("Geographic / Preferences")
    run(test_geographic_table_lists_every_neighborhood, test_customer_categories_table)

    section("write_reports")
    run(test_write_reports)

    sys.exit(summary())


if __name__ == "__main__":
    main()
