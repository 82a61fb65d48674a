"""Budget-tier degradation for discovery results.

Compara los precios de los destinos contra el presupuesto del usuario.
Los tiers se evalúan en orden estricto y gana el primero que alcanza su
mínimo de resultados:

1. ideal: 80-100% del presupuesto, al menos 5 destinos
2. good:  60-100% del presupuesto, al menos 3 destinos
3. below: cualquier precio dentro del presupuesto, al menos 3 destinos
4. none:  nada alcanza → "sin resultados" (no se muestra una lista engañosa)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from benetrip.models import AggregatedDestination

logger = logging.getLogger(__name__)


class BudgetTier(str, Enum):
    IDEAL = "ideal"
    GOOD = "good"
    BELOW = "below"
    NONE = "none"


@dataclass(frozen=True)
class TierRule:
    tier: BudgetTier
    min_ratio: float  # Fracción mínima del presupuesto
    min_count: int


TIER_RULES: tuple[TierRule, ...] = (
    TierRule(BudgetTier.IDEAL, 0.8, 5),
    TierRule(BudgetTier.GOOD, 0.6, 3),
    TierRule(BudgetTier.BELOW, 0.0, 3),
)


@dataclass
class BudgetSelection:
    tier: BudgetTier
    destinations: list[AggregatedDestination] = field(default_factory=list)
    budget: float = 0.0

    @property
    def has_results(self) -> bool:
        return self.tier is not BudgetTier.NONE


def _within(destination: AggregatedDestination, budget: float, min_ratio: float) -> bool:
    return budget * min_ratio <= destination.price <= budget


def select_budget_tier(destinations: list[AggregatedDestination], budget: float) -> BudgetSelection:
    """Pick the first budget tier that has enough destinations.

    Args:
        destinations: Destinos ya deduplicados (solo los que tienen precio cuentan).
        budget: Presupuesto en la moneda de la búsqueda.

    Returns:
        BudgetSelection con el tier ganador y sus destinos, o tier NONE.
    """
    if budget <= 0:
        raise ValueError("El presupuesto tiene que ser positivo.")

    priced = [d for d in destinations if d.price > 0]

    for rule in TIER_RULES:
        matching = [d for d in priced if _within(d, budget, rule.min_ratio)]
        if len(matching) >= rule.min_count:
            logger.info(
                "Tier %s: %d destinos entre %.0f%% y 100%% de %.0f",
                rule.tier.value, len(matching), rule.min_ratio * 100, budget,
            )
            return BudgetSelection(tier=rule.tier, destinations=matching, budget=budget)

        logger.debug(
            "Tier %s insuficiente: %d de %d requeridos",
            rule.tier.value, len(matching), rule.min_count,
        )

    cheapest = min((d.price for d in priced), default=None)
    logger.info(
        "Ningún tier alcanzó el mínimo para presupuesto %.0f (más barato: %s)",
        budget, f"{cheapest:.0f}" if cheapest is not None else "-",
    )
    return BudgetSelection(tier=BudgetTier.NONE, budget=budget)
