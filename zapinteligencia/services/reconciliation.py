"""
Reconciliation: cross-references canonical entities by shared keys.

Phone (normalized digits) joins customers, contacts and orders; order code
joins orders and sold items. A miss on any join is not an error: the record
just stays out of that join's output.
"""
from collections import defaultdict
from typing import TypeVar

from pydantic import BaseModel

from zapinteligencia.models.records import (
    CanonicalContact,
    CanonicalCustomer,
    CanonicalOrder,
    CanonicalOrderItem,
    NewLead,
    OrderWithItems,
)
from zapinteligencia.services.normalizers import (
    NEW_LEAD_TAG,
    extract_first_name,
    to_whatsapp_phone,
)

ReportRowT = TypeVar("ReportRowT", bound=BaseModel)


def find_new_leads(
    contacts: list[CanonicalContact], customers: list[CanonicalCustomer],
) -> list[NewLead]:
    """Customers whose phone is not yet a contact, formatted for contacts import.

    Output follows the customers' source order, one lead per phone. Customers
    without a usable first name are skipped (nothing to greet them with).
    """
    known_phones = {c.normalized_phone for c in contacts}
    seen: set[str] = set()
    leads: list[NewLead] = []
    for customer in customers:
        phone = customer.normalized_phone
        if not phone or phone in known_phones or phone in seen:
            continue
        first_name = extract_first_name(customer.first_name)
        if not first_name:
            continue
        seen.add(phone)
        leads.append(NewLead(
            name=f"{NEW_LEAD_TAG} {first_name}",
            phone=phone,
            whatsapp_phone=to_whatsapp_phone(phone),
        ))
    return leads


def join_order_items_to_orders(
    order_items: list[CanonicalOrderItem], orders: list[CanonicalOrder],
) -> list[OrderWithItems]:
    """Attach sold items to their order by code; orphan items are dropped.

    Every order is returned, including orders with no matching items.
    """
    items_by_code: dict[str, list[CanonicalOrderItem]] = defaultdict(list)
    for item in order_items:
        if item.order_code:
            items_by_code[item.order_code].append(item)

    return [
        OrderWithItems(
            order=order,
            items=list(items_by_code.get(order.order_code, [])) if order.order_code else [],
        )
        for order in orders
    ]


def build_customer_lookup(customers: list[CanonicalCustomer]) -> dict[str, CanonicalCustomer]:
    """Phone -> customer. When a phone repeats, the later row wins."""
    return {c.normalized_phone: c for c in customers}


def attach_customer_attributes(
    rows: list[ReportRowT], lookup: dict[str, CanonicalCustomer],
) -> list[ReportRowT]:
    """Copy first name / neighborhood / order count from the customers list onto report rows.

    Rows keep their own values when the phone is not in the customers list.
    """
    enriched: list[ReportRowT] = []
    for row in rows:
        phone = getattr(row, "phone", "")
        update = {"whatsapp_phone": to_whatsapp_phone(phone)}
        customer = lookup.get(phone)
        if customer is not None:
            update["first_name"] = customer.first_name
            update["neighborhood"] = customer.normalized_neighborhood
            update["customer_order_count"] = customer.order_count
        fields = type(row).model_fields
        enriched.append(row.model_copy(update={k: v for k, v in update.items() if k in fields}))
    return enriched
