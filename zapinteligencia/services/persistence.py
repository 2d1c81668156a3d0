"""
Persists a processing run to Supabase.

Tables (all scoped by empresa = settings.company_slug):
  zap_customers    on_conflict empresa,phone
  zap_contacts     on_conflict empresa,phone
  zap_orders       on_conflict empresa,phone,order_code,closing_date
  zap_order_items  on_conflict empresa,order_code,product_name
  zap_new_leads    on_conflict empresa,phone
  processing_logs  one row per run (insert)

Rows are deduplicated by their conflict key before sending (PostgREST rejects
a batch that touches the same row twice). A failed chunk is logged and
counted in the result; the remaining tables are still written.
"""
import logging
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, Field

from zapinteligencia.db.supabase import get_db
from zapinteligencia.services.pipeline import RunReport

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500


class PersistResult(BaseModel):
    written: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _jsonable(raw: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in raw.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif value is None or isinstance(value, (str, int, float, bool)):
            out[key] = value
        else:
            out[key] = str(value)
    return out


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def customer_rows(report: RunReport, empresa: str) -> list[dict]:
    return [
        {
            "empresa": empresa,
            "phone": c.normalized_phone,
            "first_name": c.first_name,
            "neighborhood": c.normalized_neighborhood,
            "order_count": c.order_count,
            "raw_fields": _jsonable(c.raw_fields),
        }
        for c in report.customers
    ]


def contact_rows(report: RunReport, empresa: str) -> list[dict]:
    return [
        {
            "empresa": empresa,
            "phone": c.normalized_phone,
            "name": c.name,
            "raw_phone": c.raw_phone,
            "marketing_opt_in": c.marketing_opt_in,
        }
        for c in report.contacts
    ]


def order_rows(report: RunReport, empresa: str) -> list[dict]:
    return [
        {
            "empresa": empresa,
            "phone": o.normalized_phone,
            "order_code": o.order_code,
            "closing_date": _iso(o.closing_date),
            "neighborhood": o.normalized_neighborhood,
            "subtotal": round(o.subtotal, 2),
            "delivery_fee": round(o.delivery_fee, 2),
            "total_amount": round(o.total_amount, 2),
            "origin": o.origin,
            "customer_name": o.customer_name,
        }
        for o in report.orders
    ]


def order_item_rows(report: RunReport, empresa: str) -> list[dict]:
    return [
        {
            "empresa": empresa,
            "order_code": i.order_code,
            "product_name": i.product_name,
            "category": i.category,
            "quantity": i.quantity,
            "unit_price": round(i.unit_price, 2),
            "total_price": round(i.total_price, 2),
            "closing_date": _iso(i.closing_date),
        }
        for i in report.order_items
        if i.order_code
    ]


def new_lead_rows(report: RunReport, empresa: str) -> list[dict]:
    return [
        {
            "empresa": empresa,
            "phone": lead.phone,
            "name": lead.name,
            "whatsapp_phone": lead.whatsapp_phone,
            "found_at": report.ran_at.isoformat(),
        }
        for lead in report.new_leads
    ]


TABLES: list[tuple[str, str, Callable[[RunReport, str], list[dict]]]] = [
    ("zap_customers", "empresa,phone", customer_rows),
    ("zap_contacts", "empresa,phone", contact_rows),
    ("zap_orders", "empresa,phone,order_code,closing_date", order_rows),
    ("zap_order_items", "empresa,order_code,product_name", order_item_rows),
    ("zap_new_leads", "empresa,phone", new_lead_rows),
]


def dedupe_by_key(rows: list[dict], on_conflict: str) -> list[dict]:
    """Keep one row per conflict key; the later row wins, first position is kept."""
    keys = on_conflict.split(",")
    unique: dict[tuple, dict] = {}
    for row in rows:
        unique[tuple(row.get(k) for k in keys)] = row
    return list(unique.values())


def upsert_chunked(db, table: str, rows: list[dict], on_conflict: str) -> tuple[int, list[str]]:
    written = 0
    errors: list[str] = []
    for i in range(0, len(rows), CHUNK_SIZE):
        chunk = rows[i:i + CHUNK_SIZE]
        try:
            db.table(table).upsert(chunk, on_conflict=on_conflict).execute()
            written += len(chunk)
        except Exception as e:
            logger.error("Upsert %s failed (rows %d-%d): %s", table, i, i + len(chunk), e, exc_info=True)
            errors.append(f"{table}: {str(e)[:300]}")
    return written, errors


def persist_run(report: RunReport, empresa: str, db=None) -> PersistResult:
    """Upsert every canonical set of the run and log the run in processing_logs."""
    db = db or get_db()
    result = PersistResult()

    for table, on_conflict, build_rows in TABLES:
        rows = dedupe_by_key(build_rows(report, empresa), on_conflict)
        if not rows:
            continue
        written, errors = upsert_chunked(db, table, rows, on_conflict)
        result.written[table] = written
        result.errors.extend(errors)

    log_row = {
        "empresa": empresa,
        "ran_at": report.ran_at.isoformat(),
        "summary": report.lead_summary,
        "tables": {kind.value: s.model_dump() for kind, s in report.tables.items()},
        "failures": [f.message for f in report.failures],
        "persist_errors": result.errors,
    }
    try:
        db.table("processing_logs").insert(log_row).execute()
    except Exception as e:
        logger.error("processing_logs insert failed: %s", e, exc_info=True)
        result.errors.append(f"processing_logs: {str(e)[:300]}")

    logger.info(
        "Run persisted for %s: %s%s",
        empresa,
        ", ".join(f"{t}={n}" for t, n in result.written.items()) or "nothing",
        f" ({len(result.errors)} errors)" if result.errors else "",
    )
    return result
