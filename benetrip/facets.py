"""Facet index derived from the live offer set.

Las facetas (rango de precio, rango de duración, aerolíneas, aeropuertos)
se recalculan completas en cada mutación del set de ofertas. No se
persisten ni se actualizan parcialmente.
"""

from dataclasses import dataclass, field

from benetrip.models import Offer, Passengers, price_per_person

# Con 2 o menos aeropuertos la búsqueda fue por aeropuerto puntual:
# filtrar por aeropuerto no tiene sentido y se oculta
MIN_AIRPORTS_FOR_FACET = 3


@dataclass(frozen=True)
class Bounds:
    min: float
    max: float


@dataclass
class AirlineFacet:
    name: str
    min_price: int  # Precio por persona más bajo entre las ofertas con esta aerolínea


@dataclass
class Facets:
    price: Bounds | None = None
    duration: Bounds | None = None
    airlines: dict[str, AirlineFacet] = field(default_factory=dict)
    airports: dict[str, int] = field(default_factory=dict)  # código → cantidad de usos

    @property
    def airports_enabled(self) -> bool:
        """Whether the airport facet is meaningful for this result set."""
        return len(self.airports) >= MIN_AIRPORTS_FOR_FACET


def recompute(offers: list[Offer], passengers: Passengers) -> Facets:
    """Build the facet index for the given offers. Pure, O(offers × legs)."""
    facets = Facets()
    prices: list[int] = []
    durations: list[int] = []

    for offer in offers:
        ppp = price_per_person(offer.price, passengers)
        prices.append(ppp)

        if offer.duration is not None:
            durations.append(offer.duration)

        for segment in offer.segments:
            for flight in segment.flights:
                if not flight.airline:
                    continue
                current = facets.airlines.get(flight.airline)
                if current is None:
                    facets.airlines[flight.airline] = AirlineFacet(
                        name=flight.airline_name or flight.airline, min_price=ppp,
                    )
                elif ppp < current.min_price:
                    current.min_price = ppp

            for code in (segment.departure_airport, segment.arrival_airport):
                if code:
                    facets.airports[code] = facets.airports.get(code, 0) + 1

    if prices:
        facets.price = Bounds(min(prices), max(prices))
    if durations:
        facets.duration = Bounds(min(durations), max(durations))

    return facets
