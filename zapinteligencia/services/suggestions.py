"""
Sugestões de campanha baseadas em regras simples sobre os relatórios da rodada.
Sem LLM: só limiares fixos sobre inativos, bairros, ticket médio e produtos.
"""
from zapinteligencia.models.records import (
    GeographicReport,
    HighTicketCustomer,
    InactiveCustomer,
    ProductPreferences,
)

REACTIVATION_MIN_CUSTOMERS = 50
REACTIVATION_DISCOUNT_PCT = 20
GEO_CAMPAIGN_NEIGHBORHOODS = 3
COMBO_PRODUCTS = 3


def build_suggestions(
    inactive: list[InactiveCustomer],
    geographic: GeographicReport,
    high_ticket: list[HighTicketCustomer],
    preferences: ProductPreferences,
    inactive_days: int,
    min_ticket: float,
) -> dict[str, list[str]]:
    suggestions: dict[str, list[str]] = {
        "reactivation": [],
        "geographic_campaigns": [],
        "personalized_offers": [],
        "general": [],
    }

    if len(inactive) > REACTIVATION_MIN_CUSTOMERS:
        suggestions["reactivation"].append(
            f"{len(inactive)} clientes inativos há mais de {inactive_days} dias. "
            f"Sugestão: campanha de reativação com desconto de {REACTIVATION_DISCOUNT_PCT}%"
        )

    for stats in geographic.top_by_order_count[:GEO_CAMPAIGN_NEIGHBORHOODS]:
        if not stats.neighborhood:
            continue
        suggestions["geographic_campaigns"].append(
            f"{stats.neighborhood}: {stats.order_count} pedidos. "
            f"Sugestão: campanha Meta direcionada para este bairro"
        )

    if high_ticket:
        suggestions["personalized_offers"].append(
            f"{len(high_ticket)} clientes com ticket médio >= R$ {min_ticket:.2f}. "
            f"Sugestão: ofertas premium exclusivas"
        )

    names = [p.product_name for p in preferences.top_products[:COMBO_PRODUCTS] if p.product_name]
    if names:
        suggestions["general"].append(
            f"Produtos mais vendidos: {', '.join(names)}. "
            f"Sugestão: promover combos com estes itens"
        )

    return suggestions
