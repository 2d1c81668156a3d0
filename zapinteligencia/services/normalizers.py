"""
Field normalizers: pure functions that canonicalize one scalar value.

Values arrive either as text (CSV exports) or as native numbers/datetimes
(XLSX cells read by pandas), so every function accepts Any and never raises:
unusable input maps to "" / 0 / None.
"""
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

from zapinteligencia.models.neighborhoods import NeighborhoodAliasTable

BRT = timezone(timedelta(hours=-3))

WHATSAPP_COUNTRY_CODE = "55"
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15

# Prefix the contacts export uses for people who accepted marketing messages
MARKETING_TAG_PREFIX = "LT_"
NEW_LEAD_TAG = "LT_01"

INVALID_FIRST_NAMES = {"-", "???????", "null", "none", "nan", ""}

_NON_DIGITS_RE = re.compile(r"\D")
_BR_DATE_RE = re.compile(
    r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})(?:[\sT]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?"
)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def to_text(raw: Any) -> str:
    """Cell value as stripped text. Integral floats lose their '.0'."""
    if raw is None:
        return ""
    if isinstance(raw, float):
        if math.isnan(raw):
            return ""
        if raw.is_integer():
            return str(int(raw))
    return str(raw).strip()


def normalize_code(raw: Any) -> str:
    """Order codes join across files: 1234.0 (XLSX) and '1234' (CSV) are the same order."""
    return to_text(raw)


# ---------------------------------------------------------------------------
# Phones
# ---------------------------------------------------------------------------

def normalize_phone(raw: Any) -> str:
    """Digits-only phone, or "" when the value cannot identify a customer.

    '(11) 99999-1111' -> '11999991111'; placeholders such as '0000000000',
    anything outside 10-15 digits (short numbers, two phones typed in one
    cell) and anything starting with '000' -> ''.
    No country-code handling here (see to_whatsapp_phone).
    """
    digits = _NON_DIGITS_RE.sub("", to_text(raw))
    if not digits:
        return ""
    if set(digits) == {"0"}:
        return ""
    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS or digits.startswith("000"):
        return ""
    return digits


def is_valid_phone(raw: Any) -> bool:
    return bool(normalize_phone(raw))


def to_whatsapp_phone(raw: Any) -> str:
    """Phone in the international form WhatsApp expects (55 + DDD + number).

    Stricter than normalize_phone: the result must have 12-15 digits.
    """
    phone = normalize_phone(raw)
    if not phone:
        return ""
    if phone.startswith("0"):
        phone = WHATSAPP_COUNTRY_CODE + phone[1:]
    elif len(phone) == 11 and not phone.startswith(WHATSAPP_COUNTRY_CODE):
        phone = WHATSAPP_COUNTRY_CODE + phone
    if 12 <= len(phone) <= MAX_PHONE_DIGITS:
        return phone
    return ""


def whatsapp_link(raw: Any) -> str:
    phone = to_whatsapp_phone(raw)
    return f"https://wa.me/{phone}" if phone else ""


# ---------------------------------------------------------------------------
# Names / neighborhoods
# ---------------------------------------------------------------------------

def extract_first_name(raw: Any) -> str:
    """Name used to greet the customer.

    Tagged contact names ('LT_01 Maria Silva') carry the tag first, so the
    name is taken from the end of the string ('Silva'); a tag with nothing
    after it yields ''. Untagged names return the first word
    ('João Pedro' -> 'João'). Placeholders ('-', '???????', 'null', ...) -> ''.
    """
    name = to_text(raw)
    if name.startswith(MARKETING_TAG_PREFIX):
        _, sep, rest = name.partition(" ")
        tokens = rest.split() if sep else []
        token = tokens[-1] if tokens else ""
    else:
        token = name.split(" ")[0]
    if token.lower() in INVALID_FIRST_NAMES:
        return ""
    return token


def normalize_neighborhood(raw: Any, alias_table: NeighborhoodAliasTable) -> str:
    """Canonical neighborhood for a free-text value.

    Exact match (case/whitespace-insensitive) against each canonical entry's
    variants, first entry wins. Unknown neighborhoods pass through lowercased.
    """
    lowered = to_text(raw).lower()
    if not lowered:
        return ""
    key = " ".join(lowered.split())
    for canonical, variants in alias_table.items():
        for variant in variants:
            if " ".join(variant.strip().lower().split()) == key:
                return canonical
    return lowered


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def parse_amount(raw: Any) -> float:
    """Parse a currency/number cell to float, 0.0 on failure.

    Accepts native numbers and Brazilian text ('R$ 1.234,56', '40,5'),
    as well as plain '40.50'.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    s = str(raw).strip().replace("R$", "").replace(" ", "").replace("\xa0", "")
    if not s:
        return 0.0
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")
    try:
        value = float(s)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_quantity(raw: Any) -> float:
    """Item quantity; unparsable or non-positive values count as 1."""
    value = parse_amount(raw)
    return value if value > 0 else 1.0


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_br_date(raw: Any) -> datetime | None:
    """Parse 'DD/MM/YYYY' (optionally followed by 'HH:MM[:SS]') to a naive datetime.

    Spreadsheet cells that are already datetimes are accepted as-is; aware
    datetimes are converted to BRT wall-clock time.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        if raw.tzinfo is not None:
            return raw.astimezone(BRT).replace(tzinfo=None)
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)

    m = _BR_DATE_RE.match(str(raw))
    if not m:
        return None
    day, month, year, hour, minute, second = m.groups()
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0),
        )
    except ValueError:
        return None
