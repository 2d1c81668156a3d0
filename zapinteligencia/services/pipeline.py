"""
Processing run: wires record processors, reconciliation and aggregation.

A RunContext is built fresh for every run and passed explicitly; nothing is
cached between runs. The four record processors are independent, so the
async entry point runs them in worker threads and waits for all of them
before reconciling (reconciliation needs every canonical set).
"""
import asyncio
import logging
from datetime import datetime

from pydantic import BaseModel, Field

from zapinteligencia.models.neighborhoods import NEIGHBORHOOD_ALIASES, NeighborhoodAliasTable
from zapinteligencia.models.records import (
    CanonicalContact,
    CanonicalCustomer,
    CanonicalOrder,
    CanonicalOrderItem,
    GeographicReport,
    HighTicketCustomer,
    InactiveCustomer,
    NewLead,
    ProcessResult,
    ProductPreferences,
    RawTable,
    TableFailure,
    TableKind,
)
from zapinteligencia.services.aggregation import (
    geographic_analysis,
    high_ticket_customers,
    inactive_customers,
    orders_in_period,
    product_preferences,
)
from zapinteligencia.services.normalizers import to_whatsapp_phone
from zapinteligencia.services.processors import processor_for
from zapinteligencia.services.reconciliation import (
    attach_customer_attributes,
    build_customer_lookup,
    find_new_leads,
    join_order_items_to_orders,
)
from zapinteligencia.services.suggestions import build_suggestions

logger = logging.getLogger(__name__)

DEFAULT_INACTIVE_DAYS = 30
DEFAULT_MIN_TICKET = 50.0


def months_before(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = moment.day
    while day > 28:
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1
    return moment.replace(year=year, month=month, day=day)


class RunContext(BaseModel):
    alias_table: NeighborhoodAliasTable = Field(default_factory=lambda: dict(NEIGHBORHOOD_ALIASES))
    inactive_days: int = DEFAULT_INACTIVE_DAYS
    min_ticket: float = DEFAULT_MIN_TICKET
    analysis_period_months: int = 0
    now: datetime = Field(default_factory=datetime.now)

    @property
    def period_start(self) -> datetime | None:
        if self.analysis_period_months <= 0:
            return None
        return months_before(self.now, self.analysis_period_months)


class TableSummary(BaseModel):
    source: str = ""
    rows_read: int = 0
    records: int = 0
    rows_dropped: int = 0
    columns: dict[str, str] = Field(default_factory=dict)
    ok: bool = True


class RunReport(BaseModel):
    ran_at: datetime
    tables: dict[TableKind, TableSummary] = Field(default_factory=dict)
    failures: list[TableFailure] = Field(default_factory=list)

    contacts: list[CanonicalContact] = Field(default_factory=list)
    customers: list[CanonicalCustomer] = Field(default_factory=list)
    orders: list[CanonicalOrder] = Field(default_factory=list)
    order_items: list[CanonicalOrderItem] = Field(default_factory=list)

    new_leads: list[NewLead] = Field(default_factory=list)
    inactive_customers: list[InactiveCustomer] = Field(default_factory=list)
    high_ticket_customers: list[HighTicketCustomer] = Field(default_factory=list)
    geographic: GeographicReport = Field(default_factory=GeographicReport)
    preferences: ProductPreferences = Field(default_factory=ProductPreferences)
    suggestions: dict[str, list[str]] = Field(default_factory=dict)
    lead_summary: dict[str, int] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _records(results: dict[TableKind, ProcessResult], kind: TableKind) -> list:
    result = results.get(kind)
    if result is None or not result.ok:
        return []
    return list(result.records)


def _has(results: dict[TableKind, ProcessResult], kind: TableKind) -> bool:
    result = results.get(kind)
    return result is not None and result.ok


def build_report(results: dict[TableKind, ProcessResult], context: RunContext) -> RunReport:
    """Reconcile and aggregate the processors' output. Failed tables contribute nothing."""
    contacts = _records(results, TableKind.CONTACTS)
    customers = _records(results, TableKind.CUSTOMERS)
    orders = _records(results, TableKind.ORDERS)
    order_items = _records(results, TableKind.ORDER_ITEMS)

    lookup = build_customer_lookup(customers)

    new_leads: list[NewLead] = []
    if _has(results, TableKind.CONTACTS) and _has(results, TableKind.CUSTOMERS):
        new_leads = find_new_leads(contacts, customers)

    period_orders = orders
    if context.period_start is not None:
        period_orders = orders_in_period(orders, context.period_start, context.now)

    inactive = attach_customer_attributes(
        inactive_customers(orders, context.inactive_days, context.now), lookup
    )
    high_ticket = attach_customer_attributes(
        high_ticket_customers(period_orders, context.min_ticket), lookup
    )
    geographic = geographic_analysis(period_orders)
    preferences = product_preferences(join_order_items_to_orders(order_items, period_orders))

    report = RunReport(
        ran_at=context.now,
        tables={
            kind: TableSummary(
                source=result.source,
                rows_read=result.rows_read,
                records=len(result.records),
                rows_dropped=result.rows_dropped,
                columns={role.value: column for role, column in result.columns.items()},
                ok=result.ok,
            )
            for kind, result in results.items()
        },
        failures=[r.failure for r in results.values() if r.failure is not None],
        contacts=contacts,
        customers=customers,
        orders=orders,
        order_items=order_items,
        new_leads=new_leads,
        inactive_customers=inactive,
        high_ticket_customers=high_ticket,
        geographic=geographic,
        preferences=preferences,
        suggestions=build_suggestions(
            inactive, geographic, high_ticket, preferences,
            context.inactive_days, context.min_ticket,
        ),
        lead_summary={
            "contacts": len(contacts),
            "contacts_opt_in": sum(1 for c in contacts if c.marketing_opt_in),
            "customers": len(customers),
            "new_leads": len(new_leads),
            "new_leads_whatsapp": sum(1 for lead in new_leads if lead.whatsapp_phone),
            "customers_whatsapp": sum(1 for c in customers if to_whatsapp_phone(c.normalized_phone)),
        },
    )

    for failure in report.failures:
        logger.warning("Table not processed: %s", failure.message)
    logger.info(
        "Run complete: %d contacts, %d customers, %d orders, %d items -> "
        "%d new leads, %d inactive, %d high-ticket",
        len(contacts), len(customers), len(orders), len(order_items),
        len(new_leads), len(inactive), len(high_ticket),
    )
    return report


def process_tables(
    tables: dict[TableKind, RawTable], context: RunContext,
) -> dict[TableKind, ProcessResult]:
    return {
        kind: processor_for(kind, context.alias_table)(table)
        for kind, table in tables.items()
    }


def run_pipeline(tables: dict[TableKind, RawTable], context: RunContext | None = None) -> RunReport:
    context = context or RunContext()
    return build_report(process_tables(tables, context), context)


async def run_pipeline_async(
    tables: dict[TableKind, RawTable], context: RunContext | None = None,
) -> RunReport:
    """Same as run_pipeline, with the four processors running concurrently in threads."""
    context = context or RunContext()
    kinds = list(tables)
    outputs = await asyncio.gather(*(
        asyncio.to_thread(processor_for(kind, context.alias_table), tables[kind])
        for kind in kinds
    ))
    return build_report(dict(zip(kinds, outputs)), context)
