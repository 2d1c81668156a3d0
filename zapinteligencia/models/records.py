"""
Canonical record shapes for the normalization/reconciliation pipeline.

Raw tables come from the file loader; canonical records are built by the
record processors and are immutable afterwards. Report rows are produced by
the aggregation engine and handed to the writer/persistence/HTTP layers.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class TableKind(str, Enum):
    CONTACTS = "contacts"
    CUSTOMERS = "customers"
    ORDERS = "orders"
    ORDER_ITEMS = "order_items"


class Role(str, Enum):
    """Semantic meaning of a column, resolved per source table."""
    PHONE = "phone"
    NAME = "name"
    NEIGHBORHOOD = "neighborhood"
    CUSTOMER_ORDER_COUNT = "customer_order_count"
    CLOSING_DATE = "closing_date"
    SUBTOTAL = "subtotal"
    DELIVERY_FEE = "delivery_fee"
    ORDER_CODE = "order_code"
    ORIGIN = "origin"
    PRODUCT_NAME = "product_name"
    CATEGORY = "category"
    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    TOTAL_PRICE = "total_price"


class RawTable(BaseModel):
    """One sheet/CSV as read by the loader: headers plus column -> value rows."""
    source: str = ""
    headers: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]], source: str = "") -> "RawTable":
        headers: list[str] = []
        seen: set[str] = set()
        for row in rows:
            for key in row:
                if key not in seen:
                    seen.add(key)
                    headers.append(key)
        return cls(source=source, headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Canonical entities
# ---------------------------------------------------------------------------

class CanonicalContact(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    raw_phone: str
    normalized_phone: str
    marketing_opt_in: bool


class CanonicalCustomer(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_fields: dict[str, Any]
    normalized_phone: str
    first_name: str = ""
    normalized_neighborhood: str = ""
    order_count: int = 0


class CanonicalOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    normalized_phone: str
    closing_date: datetime | None = None
    normalized_neighborhood: str = ""
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    total_amount: float = 0.0
    order_code: str = ""
    origin: str = ""
    customer_name: str = ""


class CanonicalOrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_code: str
    product_name: str = ""
    category: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    total_price: float = 0.0
    closing_date: datetime | None = None


# ---------------------------------------------------------------------------
# Processing results
# ---------------------------------------------------------------------------

class TableFailure(BaseModel):
    """A required column could not be resolved; the table was not processed."""
    table: TableKind
    source: str = ""
    unresolved_roles: list[Role]
    headers: list[str]

    @property
    def message(self) -> str:
        roles = ", ".join(r.value for r in self.unresolved_roles)
        name = self.source or self.table.value
        return f"{name}: missing column(s) for {roles}; headers: {self.headers}"


RecordT = TypeVar("RecordT")


class ProcessResult(BaseModel, Generic[RecordT]):
    kind: TableKind
    source: str = ""
    records: list[RecordT] = Field(default_factory=list)
    rows_read: int = 0
    rows_dropped: int = 0
    columns: dict[Role, str] = Field(default_factory=dict)
    failure: TableFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


# ---------------------------------------------------------------------------
# Reconciliation / report rows
# ---------------------------------------------------------------------------

class NewLead(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    whatsapp_phone: str = ""


class OrderWithItems(BaseModel):
    order: CanonicalOrder
    items: list[CanonicalOrderItem] = Field(default_factory=list)


class InactiveCustomer(BaseModel):
    model_config = ConfigDict(frozen=True)

    phone: str
    last_order_date: datetime
    days_inactive: int
    first_name: str = ""
    neighborhood: str = ""
    customer_order_count: int = 0
    whatsapp_phone: str = ""


class HighTicketCustomer(BaseModel):
    model_config = ConfigDict(frozen=True)

    phone: str
    average: float
    total_spent: float
    order_count: int
    last_order_date: datetime | None = None
    first_name: str = ""
    neighborhood: str = ""
    whatsapp_phone: str = ""


class NeighborhoodStats(BaseModel):
    neighborhood: str
    total_revenue: float
    average_ticket: float
    order_count: int
    unique_customers: int


class GeographicReport(BaseModel):
    per_neighborhood: list[NeighborhoodStats] = Field(default_factory=list)
    top_by_revenue: list[NeighborhoodStats] = Field(default_factory=list)
    top_by_order_count: list[NeighborhoodStats] = Field(default_factory=list)


class ProductStats(BaseModel):
    product_name: str
    quantity: float
    revenue: float


class CategoryPreference(BaseModel):
    phone: str
    category: str
    quantity: float
    revenue: float


class ProductPreferences(BaseModel):
    top_products: list[ProductStats] = Field(default_factory=list)
    customer_top_categories: dict[str, list[CategoryPreference]] = Field(default_factory=dict)
