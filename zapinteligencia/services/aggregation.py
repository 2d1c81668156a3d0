"""
Aggregation: per-customer and per-neighborhood rollups over canonical orders.

Every function is a pure reduction over its input for one processing run.
Malformed values were already defaulted by the normalizers, so nothing here
raises on individual records. Rankings use stable sorts: ties keep the order
in which the group first appeared.
"""
from collections import defaultdict
from datetime import datetime, timedelta

from zapinteligencia.models.records import (
    CanonicalOrder,
    CategoryPreference,
    GeographicReport,
    HighTicketCustomer,
    InactiveCustomer,
    NeighborhoodStats,
    OrderWithItems,
    ProductPreferences,
    ProductStats,
)
from zapinteligencia.services.normalizers import BRT

TOP_NEIGHBORHOODS = 10
TOP_PRODUCTS = 20
TOP_CATEGORIES_PER_CUSTOMER = 3


def _naive_brt(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(BRT).replace(tzinfo=None)
    return moment


def orders_in_period(
    orders: list[CanonicalOrder], start: datetime | None, end: datetime | None = None,
) -> list[CanonicalOrder]:
    """Orders closed within [start, end]. Orders without a closing date are excluded."""
    start = _naive_brt(start) if start else None
    end = _naive_brt(end) if end else None
    selected = []
    for order in orders:
        if order.closing_date is None:
            continue
        if start and order.closing_date < start:
            continue
        if end and order.closing_date > end:
            continue
        selected.append(order)
    return selected


def inactive_customers(
    orders: list[CanonicalOrder], threshold_days: int, now: datetime,
) -> list[InactiveCustomer]:
    """Customers whose latest dated order is more than threshold_days old.

    A phone whose orders all lack a closing date is left out: inactivity
    cannot be measured without a date. Most inactive first.
    """
    now = _naive_brt(now)
    last_order: dict[str, datetime] = {}
    for order in orders:
        if order.closing_date is None:
            continue
        current = last_order.get(order.normalized_phone)
        if current is None or order.closing_date > current:
            last_order[order.normalized_phone] = order.closing_date

    threshold = timedelta(days=threshold_days)
    inactive = [
        InactiveCustomer(
            phone=phone,
            last_order_date=last,
            days_inactive=(now - last).days,
        )
        for phone, last in last_order.items()
        if now - last > threshold
    ]
    inactive.sort(key=lambda c: c.days_inactive, reverse=True)
    return inactive


def high_ticket_customers(
    orders: list[CanonicalOrder], min_average: float,
) -> list[HighTicketCustomer]:
    """Customers whose average order value is at least min_average. Highest average first."""
    totals: dict[str, list[float]] = defaultdict(list)
    last_order: dict[str, datetime | None] = {}
    for order in orders:
        phone = order.normalized_phone
        totals[phone].append(order.total_amount)
        current = last_order.setdefault(phone, None)
        if order.closing_date is not None and (current is None or order.closing_date > current):
            last_order[phone] = order.closing_date

    customers = []
    for phone, values in totals.items():
        total_spent = sum(values)
        average = total_spent / len(values)
        if average < min_average:
            continue
        customers.append(HighTicketCustomer(
            phone=phone,
            average=average,
            total_spent=total_spent,
            order_count=len(values),
            last_order_date=last_order.get(phone),
        ))
    customers.sort(key=lambda c: c.average, reverse=True)
    return customers


def geographic_analysis(
    orders: list[CanonicalOrder], top_n: int = TOP_NEIGHBORHOODS,
) -> GeographicReport:
    """Revenue, ticket, order count and distinct customers per neighborhood.

    Orders with no neighborhood form their own "" group.
    """
    revenue: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    phones: dict[str, set[str]] = defaultdict(set)
    for order in orders:
        key = order.normalized_neighborhood
        revenue[key] += order.total_amount
        counts[key] += 1
        phones[key].add(order.normalized_phone)

    stats = [
        NeighborhoodStats(
            neighborhood=key,
            total_revenue=revenue[key],
            average_ticket=revenue[key] / counts[key],
            order_count=counts[key],
            unique_customers=len(phones[key]),
        )
        for key in counts
    ]
    return GeographicReport(
        per_neighborhood=stats,
        top_by_revenue=sorted(stats, key=lambda s: s.total_revenue, reverse=True)[:top_n],
        top_by_order_count=sorted(stats, key=lambda s: s.order_count, reverse=True)[:top_n],
    )


def product_preferences(
    joined: list[OrderWithItems],
    top_products: int = TOP_PRODUCTS,
    top_categories: int = TOP_CATEGORIES_PER_CUSTOMER,
) -> ProductPreferences:
    """Best-selling products overall and each customer's favourite categories (by quantity)."""
    product_qty: dict[str, float] = defaultdict(float)
    product_revenue: dict[str, float] = defaultdict(float)
    category_qty: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    category_revenue: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))

    for entry in joined:
        phone = entry.order.normalized_phone
        for item in entry.items:
            product_qty[item.product_name] += item.quantity
            product_revenue[item.product_name] += item.total_price
            category_qty[phone][item.category] += item.quantity
            category_revenue[phone][item.category] += item.total_price

    products = [
        ProductStats(product_name=name, quantity=qty, revenue=product_revenue[name])
        for name, qty in product_qty.items()
    ]
    products.sort(key=lambda p: p.quantity, reverse=True)

    per_customer: dict[str, list[CategoryPreference]] = {}
    for phone, categories in category_qty.items():
        ranked = sorted(categories.items(), key=lambda kv: kv[1], reverse=True)[:top_categories]
        per_customer[phone] = [
            CategoryPreference(
                phone=phone,
                category=category,
                quantity=qty,
                revenue=category_revenue[phone][category],
            )
            for category, qty in ranked
        ]

    return ProductPreferences(
        top_products=products[:top_products],
        customer_top_categories=per_customer,
    )
