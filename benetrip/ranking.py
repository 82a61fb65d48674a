"""Offer ranking strategies.

Tres órdenes totales sobre la lista filtrada:
- cheapest: precio por persona ascendente
- fastest: duración de la ida ascendente
- best: score ponderado normalizado con los bounds actuales de las facetas
"""

import math
from enum import Enum

from benetrip.facets import Bounds, Facets
from benetrip.models import Offer, Passengers, price_per_person

# Pesos del score "best": el precio pesa más, pero duración y escalas penalizan
PRICE_WEIGHT = 0.55
DURATION_WEIGHT = 0.30
STOPS_WEIGHT = 0.15
STOP_PENALTY_UNIT = 0.1
STOP_PENALTY_CAP = 0.2


class SortStrategy(str, Enum):
    CHEAPEST = "cheapest"
    FASTEST = "fastest"
    BEST = "best"


def normalize(value: float, bounds: Bounds) -> float:
    return (value - bounds.min) / max(bounds.max - bounds.min, 1)


def best_score(offer: Offer, facets: Facets, passengers: Passengers) -> float:
    """Weighted score for the 'best' strategy. Lower is better.

    Ofertas sin duración usan el máximo de duración de las facetas
    (se tratan como el peor caso en vez de excluirse).
    """
    price_term = 0.0
    if facets.price is not None:
        price_term = normalize(price_per_person(offer.price, passengers), facets.price)

    duration_term = 0.0
    if facets.duration is not None:
        duration = offer.duration if offer.duration is not None else facets.duration.max
        duration_term = normalize(duration, facets.duration)

    stops_term = min(offer.max_stops * STOP_PENALTY_UNIT, STOP_PENALTY_CAP)

    return PRICE_WEIGHT * price_term + DURATION_WEIGHT * duration_term + STOPS_WEIGHT * stops_term


def rank_offers(
    offers: list[Offer],
    strategy: SortStrategy,
    facets: Facets,
    passengers: Passengers,
) -> list[Offer]:
    """Return a new list ordered by the given strategy.

    facets tiene que ser el índice calculado sobre el set actual de
    ofertas; el score "best" se normaliza con esos bounds en cada llamada.
    """
    strategy = SortStrategy(strategy)

    if strategy is SortStrategy.CHEAPEST:
        return sorted(offers, key=lambda o: price_per_person(o.price, passengers))

    if strategy is SortStrategy.FASTEST:
        # Sin duración → al final
        return sorted(offers, key=lambda o: o.duration if o.duration is not None else math.inf)

    return sorted(offers, key=lambda o: best_score(o, facets, passengers))
