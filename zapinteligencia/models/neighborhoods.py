"""
Tabela de apelidos de bairros (Jaguariúna e região).
Cada bairro canônico tem a lista de grafias já vistas nas exportações do PDV,
todas em minúsculas. A ordem importa: o primeiro bairro que contém a variante vence.
"""
import logging

logger = logging.getLogger(__name__)

NeighborhoodAliasTable = dict[str, list[str]]

NEIGHBORHOOD_ALIASES: NeighborhoodAliasTable = {
    "fontanella": ["fontanela", "fontanella", "fortanella"],
    "jardim dona luiza": ["jardim dona luiza", "jardim d. luiza", "dona luiza"],
    "nova jaguariuna": ["nova jaguariúna", "nova jaguariuna"],
    "centro": ["centro", "centro da cidade"],
    "zambom": ["zambom", "jardim zambom"],
    "capotuna": ["capotuna"],
    "triunfo": ["triunfo", "jardim triunfo"],
    "nassif": ["nassif", "nucleo res. dr. joao a nassif"],
    "capela de santo antonio": ["capela de santo antonio", "capela santo antonio"],
    "chácara primavera": ["chácara primavera", "chacara primavera", "primavera"],
    "jardim europa": ["jardim europa", "europa"],
    "jardim mauá ii": ["jardim mauá ii", "jardim maua ii", "mauá ii"],
    "jardim santa cruz": ["jardim santa cruz", "santa cruz"],
    "roseira de cima": ["roseira de cima", "roseira"],
    "tamboré": ["tamboré", "tambore"],
    # Shadowed by "nova jaguariuna" above (first match wins); kept for exports
    # that group by the accented key.
    "nova jaguariúna": ["nova jaguariúna", "nova jaguariuna"],
}


def merge_alias_rows(base: NeighborhoodAliasTable, rows: list[dict]) -> NeighborhoodAliasTable:
    """Append {canonical, variant} rows to a copy of the base table.

    New canonical names go after the static ones so they never shadow them.
    """
    table = {canonical: list(variants) for canonical, variants in base.items()}
    for row in rows:
        canonical = (row.get("canonical") or "").strip().lower()
        variant = (row.get("variant") or "").strip().lower()
        if not canonical or not variant:
            continue
        variants = table.setdefault(canonical, [])
        if variant not in variants:
            variants.append(variant)
    return table


def load_alias_table(db=None) -> NeighborhoodAliasTable:
    """Static table plus overrides from the neighborhood_aliases table, when available."""
    if db is None:
        return merge_alias_rows(NEIGHBORHOOD_ALIASES, [])
    try:
        result = db.table("neighborhood_aliases").select("canonical, variant").execute()
    except Exception as e:
        logger.warning("neighborhood_aliases unavailable, using static table: %s", e)
        return merge_alias_rows(NEIGHBORHOOD_ALIASES, [])
    return merge_alias_rows(NEIGHBORHOOD_ALIASES, result.data or [])
