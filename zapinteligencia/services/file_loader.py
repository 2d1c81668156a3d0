"""
Loads POS / contacts exports into RawTables.

Accepted inputs:
  - contacts*.csv                     Google Contacts export
  - *Lista-Clientes*.xls[x]           lista de clientes do PDV
  - *Todos os pedidos*.xls[x]         todos os pedidos
  - *Historico_Itens_Vendidos*.xls[x] histórico de itens vendidos

CSV separator (',' or ';') is detected from the header line; encoding falls
back from UTF-8 (with BOM) to latin-1, which is what older PDV exports use.
Spreadsheets are read from their first sheet. Empty cells become "".
"""
import fnmatch
import io
import logging
import zipfile
from pathlib import Path

import pandas as pd

from zapinteligencia.models.records import RawTable, TableKind

logger = logging.getLogger(__name__)

# Order matters: first matching kind wins
FILE_PATTERNS: list[tuple[TableKind, list[str]]] = [
    (TableKind.CONTACTS, ["*contacts*.csv", "*contacts*.xls*", "*contatos*.csv"]),
    (TableKind.CUSTOMERS, ["*lista-clientes*.xls*", "*lista-clientes*.csv", "*lista_clientes*"]),
    (TableKind.ORDERS, ["*todos os pedidos*.xls*", "*todos os pedidos*.csv", "*todos_os_pedidos*"]),
    (TableKind.ORDER_ITEMS, ["*historico_itens_vendidos*", "*historico itens vendidos*"]),
]

CSV_ENCODINGS = ("utf-8-sig", "latin-1")


def detect_table_kind(filename: str) -> TableKind | None:
    name = Path(filename).name.lower()
    for kind, patterns in FILE_PATTERNS:
        if any(fnmatch.fnmatch(name, pattern) for pattern in patterns):
            return kind
    return None


def _decode(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError("Arquivo CSV com codificação desconhecida")


def _detect_separator(text: str) -> str:
    header_line = text.split("\n", 1)[0]
    return ";" if header_line.count(";") > header_line.count(",") else ","


def _frame_to_table(df: pd.DataFrame, source: str) -> RawTable:
    df.columns = [str(c).strip() for c in df.columns]
    # Excel exports often carry trailing "Unnamed: N" columns with no data
    df = df.loc[:, [c for c in df.columns if not (c.startswith("Unnamed:") and df[c].isna().all())]]
    df = df.dropna(how="all")
    df = df.astype(object).where(pd.notna(df), "")
    rows = df.to_dict(orient="records")
    return RawTable(source=source, headers=list(df.columns), rows=rows)


def read_csv_bytes(content: bytes, source: str = "") -> RawTable:
    text = _decode(content)
    sep = _detect_separator(text)
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            on_bad_lines="skip",
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        return RawTable(source=source)
    except pd.errors.ParserError as e:
        raise ValueError(f"CSV inválido ({source}): {e}") from e
    return _frame_to_table(df, source)


def read_excel_bytes(content: bytes, source: str = "") -> RawTable:
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    except (ValueError, zipfile.BadZipFile) as e:
        raise ValueError(f"Planilha inválida ({source}): {e}") from e
    return _frame_to_table(df, source)


def load_table_bytes(content: bytes, filename: str) -> RawTable:
    """Parse an uploaded file into a RawTable. Raises ValueError when unreadable."""
    suffix = Path(filename).suffix.lower()
    if suffix == ".csv":
        table = read_csv_bytes(content, source=filename)
    elif suffix in (".xlsx", ".xls"):
        table = read_excel_bytes(content, source=filename)
    else:
        raise ValueError(f"Extensão não suportada: {suffix or filename}")
    logger.info("Loaded %s: %d rows, %d columns", filename, len(table.rows), len(table.headers))
    return table


def load_table(path: str | Path) -> RawTable:
    path = Path(path)
    return load_table_bytes(path.read_bytes(), path.name)


def load_directory(directory: str | Path) -> dict[TableKind, RawTable]:
    """Load the first file of each kind found in a directory (sorted by name)."""
    tables: dict[TableKind, RawTable] = {}
    for path in sorted(Path(directory).iterdir()):
        if not path.is_file():
            continue
        kind = detect_table_kind(path.name)
        if kind is None or kind in tables:
            continue
        try:
            tables[kind] = load_table(path)
        except ValueError as e:
            logger.error("Skipping %s: %s", path.name, e)
    return tables
