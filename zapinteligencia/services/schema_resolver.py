"""
Schema resolver: maps semantic roles to physical columns, once per table.

Header names change between export vintages ("Telefone" vs "Fone Principal",
"Valor Tot. Item" vs "Valor. Tot. Item"), so each role has a prioritized
list of candidate headers per table kind. Resolution strategies, in order:

  1. exact header match, in candidate priority order
  2. case/whitespace-insensitive header match
  3. phone role only: value-sampling heuristic (guess_phone_column)

Strategy 3 is a heuristic. It can pick a wrong column on tables where some
other numeric column happens to look like phone numbers, which is why it only
runs after every header candidate failed.
"""
from typing import Any, Iterable

from zapinteligencia.models.records import RawTable, Role, TableFailure, TableKind
from zapinteligencia.services.normalizers import is_valid_phone, to_text

ColumnMap = dict[Role, str]

_PHONE_CANDIDATES = ["Telefone", "Fone", "Celular", "Phone"]

HEADER_ALIASES: dict[TableKind, dict[Role, list[str]]] = {
    TableKind.CONTACTS: {
        Role.NAME: ["First Name", "Nome", "Name"],
        Role.PHONE: ["Phone 1 - Value", *_PHONE_CANDIDATES],
    },
    TableKind.CUSTOMERS: {
        Role.PHONE: ["Fone Principal", *_PHONE_CANDIDATES],
        Role.NAME: ["Nome", "Cliente", "Name"],
        Role.NEIGHBORHOOD: ["Bairro"],
        Role.CUSTOMER_ORDER_COUNT: ["Qtd. Pedidos", "Qtd Pedidos", "Quantidade de Pedidos"],
    },
    TableKind.ORDERS: {
        Role.PHONE: _PHONE_CANDIDATES,
        Role.NAME: ["Cliente", "Nome"],
        Role.CLOSING_DATE: ["Data Fechamento", "Data Fec. Ped.", "Data"],
        Role.SUBTOTAL: ["Total", "Subtotal", "Valor"],
        Role.DELIVERY_FEE: ["Valor Entrega", "Taxa Entrega", "Taxa de Entrega"],
        Role.NEIGHBORHOOD: ["Bairro"],
        Role.ORDER_CODE: ["Código", "Codigo", "Cod. Ped."],
        Role.ORIGIN: ["Origem", "Canal", "Tipo"],
    },
    TableKind.ORDER_ITEMS: {
        Role.ORDER_CODE: ["Cod. Ped.", "Código", "Codigo"],
        Role.PRODUCT_NAME: ["Nome Prod", "Nome Produto", "Produto"],
        Role.CATEGORY: ["Cat. Prod.", "Categoria"],
        Role.QUANTITY: ["Qtd.", "Qtd", "Quantidade"],
        Role.UNIT_PRICE: ["Valor Unit.", "Valor Unitário", "Valor Un. Item"],
        Role.TOTAL_PRICE: [
            "Valor Tot. Item", "Valor. Tot. Item", "Valor Tot Item",
            "Valor Total Item", "Valor",
        ],
        Role.CLOSING_DATE: ["Data Fec. Ped.", "Data Fechamento"],
    },
}

REQUIRED_ROLES: dict[TableKind, list[Role]] = {
    TableKind.CONTACTS: [Role.NAME, Role.PHONE],
    TableKind.CUSTOMERS: [Role.PHONE],
    TableKind.ORDERS: [Role.PHONE],
    TableKind.ORDER_ITEMS: [Role.ORDER_CODE],
}

PHONE_HEADER_HINTS = ("telefone", "fone", "phone", "celular", "whatsapp")
PHONE_SAMPLE_SIZE = 10


def _header_key(header: str) -> str:
    return " ".join(str(header).split()).casefold()


def find_column(headers: Iterable[str], candidates: list[str]) -> str | None:
    """First candidate present in the headers (exact, then case-insensitive)."""
    headers = list(headers)
    present = set(headers)
    for candidate in candidates:
        if candidate in present:
            return candidate

    by_key: dict[str, str] = {}
    for header in headers:
        by_key.setdefault(_header_key(header), header)
    for candidate in candidates:
        match = by_key.get(_header_key(candidate))
        if match is not None:
            return match
    return None


def guess_phone_column(
    headers: list[str],
    rows: list[dict[str, Any]],
    exclude: Iterable[str] = (),
    sample_size: int = PHONE_SAMPLE_SIZE,
) -> str | None:
    """Heuristic: first column whose sampled non-empty values are mostly valid phones.

    Columns whose name hints at a phone are tried before the others.
    """
    excluded = set(exclude)
    columns = [h for h in headers if h not in excluded]
    hinted = [h for h in columns if any(hint in _header_key(h) for hint in PHONE_HEADER_HINTS)]
    ordered = hinted + [h for h in columns if h not in hinted]

    sample = rows[:sample_size]
    for column in ordered:
        values = [to_text(row.get(column)) for row in sample]
        values = [v for v in values if v]
        if not values:
            continue
        valid = sum(1 for v in values if is_valid_phone(v))
        if valid * 2 >= len(values):
            return column
    return None


def resolve_columns(
    table: RawTable,
    kind: TableKind,
    aliases: dict[Role, list[str]] | None = None,
    required: list[Role] | None = None,
) -> tuple[ColumnMap, TableFailure | None]:
    """Resolve every known role of a table kind.

    Returns (columns, failure). failure is set when any required role stayed
    unresolved; columns then holds whatever did resolve, for diagnostics only.
    """
    aliases = aliases if aliases is not None else HEADER_ALIASES[kind]
    required = required if required is not None else REQUIRED_ROLES[kind]

    columns: ColumnMap = {}
    for role, candidates in aliases.items():
        column = find_column(table.headers, candidates)
        if column is not None:
            columns[role] = column

    if Role.PHONE in aliases and Role.PHONE not in columns:
        guessed = guess_phone_column(table.headers, table.rows, exclude=columns.values())
        if guessed is not None:
            columns[Role.PHONE] = guessed

    unresolved = [role for role in required if role not in columns]
    if unresolved:
        return columns, TableFailure(
            table=kind,
            source=table.source,
            unresolved_roles=unresolved,
            headers=list(table.headers),
        )
    return columns, None
