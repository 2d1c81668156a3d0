"""
Record processors: one per source table kind.

Each processor resolves the table's columns once (schema_resolver), then
normalizes row by row. Rows that break a hard invariant (no usable phone)
are dropped; bad numbers/dates fall back to the normalizer defaults. A table
whose required columns cannot be resolved is not processed at all: the result
carries a TableFailure instead of records.
"""
from typing import Any, Callable

from zapinteligencia.models.neighborhoods import NeighborhoodAliasTable
from zapinteligencia.models.records import (
    CanonicalContact,
    CanonicalCustomer,
    CanonicalOrder,
    CanonicalOrderItem,
    ProcessResult,
    RawTable,
    Role,
    TableKind,
)
from zapinteligencia.services.normalizers import (
    MARKETING_TAG_PREFIX,
    extract_first_name,
    normalize_code,
    normalize_neighborhood,
    normalize_phone,
    parse_amount,
    parse_br_date,
    parse_quantity,
    to_text,
)
from zapinteligencia.services.schema_resolver import ColumnMap, resolve_columns


def _value(row: dict[str, Any], columns: ColumnMap, role: Role) -> Any:
    column = columns.get(role)
    return row.get(column) if column is not None else None


def _finish(kind: TableKind, table: RawTable, columns: ColumnMap, records: list) -> ProcessResult:
    return ProcessResult(
        kind=kind,
        source=table.source,
        records=records,
        rows_read=len(table.rows),
        rows_dropped=len(table.rows) - len(records),
        columns=columns,
    )


def _failed(kind: TableKind, table: RawTable, columns: ColumnMap, failure) -> ProcessResult:
    return ProcessResult(
        kind=kind,
        source=table.source,
        rows_read=len(table.rows),
        rows_dropped=len(table.rows),
        columns=columns,
        failure=failure,
    )


def process_contacts(table: RawTable) -> ProcessResult[CanonicalContact]:
    """Contacts export (Google Contacts CSV). Requires name + phone columns."""
    columns, failure = resolve_columns(table, TableKind.CONTACTS)
    if failure:
        return _failed(TableKind.CONTACTS, table, columns, failure)

    records: list[CanonicalContact] = []
    for row in table.rows:
        raw_phone = to_text(_value(row, columns, Role.PHONE))
        phone = normalize_phone(raw_phone)
        if not phone:
            continue
        name = to_text(_value(row, columns, Role.NAME))
        records.append(CanonicalContact(
            name=name,
            raw_phone=raw_phone,
            normalized_phone=phone,
            marketing_opt_in=name.startswith(MARKETING_TAG_PREFIX),
        ))
    return _finish(TableKind.CONTACTS, table, columns, records)


def process_customers(
    table: RawTable, alias_table: NeighborhoodAliasTable,
) -> ProcessResult[CanonicalCustomer]:
    """Lista de Clientes. Phone required; name/neighborhood optional."""
    columns, failure = resolve_columns(table, TableKind.CUSTOMERS)
    if failure:
        return _failed(TableKind.CUSTOMERS, table, columns, failure)

    records: list[CanonicalCustomer] = []
    for row in table.rows:
        phone = normalize_phone(_value(row, columns, Role.PHONE))
        if not phone:
            continue
        records.append(CanonicalCustomer(
            raw_fields=dict(row),
            normalized_phone=phone,
            first_name=extract_first_name(_value(row, columns, Role.NAME)),
            normalized_neighborhood=normalize_neighborhood(
                _value(row, columns, Role.NEIGHBORHOOD), alias_table
            ),
            order_count=max(int(parse_amount(_value(row, columns, Role.CUSTOMER_ORDER_COUNT))), 0),
        ))
    return _finish(TableKind.CUSTOMERS, table, columns, records)


def process_orders(
    table: RawTable, alias_table: NeighborhoodAliasTable,
) -> ProcessResult[CanonicalOrder]:
    """Todos os Pedidos. Orders without a phone (mesa/comanda) are dropped."""
    columns, failure = resolve_columns(table, TableKind.ORDERS)
    if failure:
        return _failed(TableKind.ORDERS, table, columns, failure)

    records: list[CanonicalOrder] = []
    for row in table.rows:
        phone = normalize_phone(_value(row, columns, Role.PHONE))
        if not phone:
            continue
        subtotal = max(parse_amount(_value(row, columns, Role.SUBTOTAL)), 0.0)
        delivery_fee = max(parse_amount(_value(row, columns, Role.DELIVERY_FEE)), 0.0)
        records.append(CanonicalOrder(
            normalized_phone=phone,
            closing_date=parse_br_date(_value(row, columns, Role.CLOSING_DATE)),
            normalized_neighborhood=normalize_neighborhood(
                _value(row, columns, Role.NEIGHBORHOOD), alias_table
            ),
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            total_amount=subtotal + delivery_fee,
            order_code=normalize_code(_value(row, columns, Role.ORDER_CODE)),
            origin=to_text(_value(row, columns, Role.ORIGIN)),
            customer_name=to_text(_value(row, columns, Role.NAME)),
        ))
    return _finish(TableKind.ORDERS, table, columns, records)


def process_order_items(table: RawTable) -> ProcessResult[CanonicalOrderItem]:
    """Histórico de Itens Vendidos. Every row is kept; orphans drop out at join time."""
    columns, failure = resolve_columns(table, TableKind.ORDER_ITEMS)
    if failure:
        return _failed(TableKind.ORDER_ITEMS, table, columns, failure)

    records: list[CanonicalOrderItem] = []
    for row in table.rows:
        quantity = parse_quantity(_value(row, columns, Role.QUANTITY))
        unit_price = parse_amount(_value(row, columns, Role.UNIT_PRICE))
        total_price = parse_amount(_value(row, columns, Role.TOTAL_PRICE))
        if not unit_price and total_price:
            unit_price = total_price / quantity
        elif not total_price and unit_price:
            total_price = unit_price * quantity
        records.append(CanonicalOrderItem(
            order_code=normalize_code(_value(row, columns, Role.ORDER_CODE)),
            product_name=to_text(_value(row, columns, Role.PRODUCT_NAME)),
            category=to_text(_value(row, columns, Role.CATEGORY)),
            quantity=quantity,
            unit_price=max(unit_price, 0.0),
            total_price=total_price,
            closing_date=parse_br_date(_value(row, columns, Role.CLOSING_DATE)),
        ))
    return _finish(TableKind.ORDER_ITEMS, table, columns, records)


def processor_for(
    kind: TableKind, alias_table: NeighborhoodAliasTable,
) -> Callable[[RawTable], ProcessResult]:
    """Single-argument processor for a table kind (alias table bound where needed)."""
    if kind is TableKind.CONTACTS:
        return process_contacts
    if kind is TableKind.CUSTOMERS:
        return lambda table: process_customers(table, alias_table)
    if kind is TableKind.ORDERS:
        return lambda table: process_orders(table, alias_table)
    return process_order_items
