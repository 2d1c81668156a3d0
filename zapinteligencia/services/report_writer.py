"""
Writes the run's reports to disk.

- novos_leads_*.csv      -> Google Contacts import (Name, Phone 1 - Value)
- clientes_inativos_*.xlsx, ticket_medio_alto_*.xlsx,
  analise_geografica_*.xlsx, produtos_mais_vendidos_*.xlsx,
  preferencias_clientes_*.xlsx -> planilhas para o time
"""
import logging
from datetime import datetime
from pathlib import Path

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font

from zapinteligencia.services.normalizers import whatsapp_link
from zapinteligencia.services.pipeline import RunReport

logger = logging.getLogger(__name__)

GOOGLE_CONTACTS_COLUMNS = ["Name", "Phone 1 - Value"]
MAX_COLUMN_WIDTH = 50


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def write_new_leads_csv(report: RunReport, output_path: str | Path) -> bool:
    """Google Contacts import file. Returns False when there are no new leads."""
    if not report.new_leads:
        return False
    df = pd.DataFrame(
        [[lead.name, lead.phone] for lead in report.new_leads],
        columns=GOOGLE_CONTACTS_COLUMNS,
    )
    df.to_csv(output_path, index=False, sep=",", encoding="utf-8-sig")
    return True


def write_xlsx(columns: list[str], rows: list[list], output_path: str | Path, title: str) -> bool:
    """Single-sheet workbook: bold header, columns sized to content."""
    if not rows:
        return False

    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    header_font = Font(bold=True)
    for col_idx, col_name in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = header_font

    for row_idx, row_data in enumerate(rows, 2):
        for col_idx, value in enumerate(row_data, 1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    for col in ws.columns:
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_length + 2, MAX_COLUMN_WIDTH)

    wb.save(output_path)
    return True


# ---------------------------------------------------------------------------
# Report tables (columns + rows), shared by the XLSX writer and the JSON API
# ---------------------------------------------------------------------------

def inactive_table(report: RunReport) -> tuple[list[str], list[list]]:
    columns = ["Telefone", "Nome", "Bairro", "Último Pedido", "Dias Inativo", "Qtd. Pedidos", "WhatsApp"]
    rows = [
        [
            c.phone, c.first_name, c.neighborhood, _fmt_date(c.last_order_date),
            c.days_inactive, c.customer_order_count, whatsapp_link(c.whatsapp_phone),
        ]
        for c in report.inactive_customers
    ]
    return columns, rows


def high_ticket_table(report: RunReport) -> tuple[list[str], list[list]]:
    columns = ["Telefone", "Nome", "Bairro", "Ticket Médio", "Total Gasto", "Pedidos", "Último Pedido", "WhatsApp"]
    rows = [
        [
            c.phone, c.first_name, c.neighborhood, round(c.average, 2), round(c.total_spent, 2),
            c.order_count, _fmt_date(c.last_order_date), whatsapp_link(c.whatsapp_phone),
        ]
        for c in report.high_ticket_customers
    ]
    return columns, rows


def geographic_table(report: RunReport) -> tuple[list[str], list[list]]:
    """Every neighborhood, highest revenue first."""
    columns = ["Bairro", "Faturamento", "Ticket Médio", "Pedidos", "Clientes Únicos"]
    stats = sorted(report.geographic.per_neighborhood, key=lambda s: s.total_revenue, reverse=True)
    rows = [
        [
            s.neighborhood or "(sem bairro)", round(s.total_revenue, 2), round(s.average_ticket, 2),
            s.order_count, s.unique_customers,
        ]
        for s in stats
    ]
    return columns, rows


def products_table(report: RunReport) -> tuple[list[str], list[list]]:
    columns = ["Produto", "Quantidade", "Faturamento"]
    rows = [
        [p.product_name, round(p.quantity, 2), round(p.revenue, 2)]
        for p in report.preferences.top_products
    ]
    return columns, rows


def customer_categories_table(report: RunReport) -> tuple[list[str], list[list]]:
    """Each customer's favourite categories, by quantity, sorted by phone."""
    columns = ["Telefone", "Posição", "Categoria", "Quantidade", "Faturamento"]
    rows = []
    for phone in sorted(report.preferences.customer_top_categories):
        for rank, pref in enumerate(report.preferences.customer_top_categories[phone], 1):
            rows.append([phone, rank, pref.category, round(pref.quantity, 2), round(pref.revenue, 2)])
    return columns, rows


def new_leads_table(report: RunReport) -> tuple[list[str], list[list]]:
    columns = GOOGLE_CONTACTS_COLUMNS + ["WhatsApp"]
    rows = [[lead.name, lead.phone, whatsapp_link(lead.whatsapp_phone)] for lead in report.new_leads]
    return columns, rows


REPORT_TABLES = {
    "novos_leads": new_leads_table,
    "clientes_inativos": inactive_table,
    "ticket_medio_alto": high_ticket_table,
    "analise_geografica": geographic_table,
    "produtos_mais_vendidos": products_table,
    "preferencias_clientes": customer_categories_table,
}

SHEET_TITLES = {
    "clientes_inativos": "Clientes Inativos",
    "ticket_medio_alto": "Ticket Médio Alto",
    "analise_geografica": "Análise Geográfica",
    "produtos_mais_vendidos": "Produtos Mais Vendidos",
    "preferencias_clientes": "Preferências Clientes",
}


def write_reports(report: RunReport, output_dir: str | Path) -> dict[str, Path]:
    """Write every non-empty report; returns report name -> file path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = report.ran_at.strftime("%Y%m%d_%H%M%S")

    written: dict[str, Path] = {}
    leads_path = output_dir / f"novos_leads_{timestamp}.csv"
    if write_new_leads_csv(report, leads_path):
        written["novos_leads"] = leads_path

    for name, title in SHEET_TITLES.items():
        columns, rows = REPORT_TABLES[name](report)
        path = output_dir / f"{name}_{timestamp}.xlsx"
        if write_xlsx(columns, rows, path, title):
            written[name] = path

    logger.info("Reports written to %s: %s", output_dir, ", ".join(written) or "none")
    return written
