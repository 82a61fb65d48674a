"""Filter engine for the offer list.

Evalúa un FilterSpec contra las ofertas. Todos los predicados son
independientes y se combinan con AND. Es una transformación pura: nunca
modifica las ofertas ni la lista de entrada.

Convención de los allow-sets: None significa "todos"; un set vacío es
un estado válido que excluye todo (el usuario destildó cada checkbox).
"""

import math
from dataclasses import dataclass, field

from benetrip.models import Offer, Passengers, Segment, price_per_person

# Categorías de escalas
DIRECT = 0
ONE_STOP = 1
TWO_PLUS = 2

MINUTES_PER_DAY = 24 * 60


def stops_category(max_stops: int) -> int:
    """Map an offer's max_stops to direct / one stop / two-or-more."""
    return min(max(max_stops, 0), TWO_PLUS)


@dataclass(frozen=True)
class TimeWindow:
    """Minute-of-day range [start, end], both inclusive (0-1439)."""

    start: int = 0
    end: int = MINUTES_PER_DAY - 1

    def __post_init__(self) -> None:
        if not (0 <= self.start <= self.end < MINUTES_PER_DAY):
            raise ValueError(f"Ventana horaria inválida: {self.start}-{self.end}")

    @property
    def is_full_day(self) -> bool:
        return self.start == 0 and self.end == MINUTES_PER_DAY - 1

    def contains(self, minute: int | None) -> bool:
        # Sin horario informado no hay nada que filtrar
        if minute is None:
            return True
        return self.start <= minute <= self.end


FULL_DAY = TimeWindow()


@dataclass(frozen=True)
class FilterSpec:
    """Set of predicates applied to the offer list."""

    stops: frozenset[int] | None = None
    airlines: frozenset[str] | None = None
    airports: frozenset[str] | None = None
    outbound_departure: TimeWindow = field(default=FULL_DAY)
    outbound_arrival: TimeWindow = field(default=FULL_DAY)
    return_departure: TimeWindow = field(default=FULL_DAY)
    return_arrival: TimeWindow = field(default=FULL_DAY)
    price_ceiling: float = math.inf  # Precio por persona
    duration_ceiling: float = math.inf  # Minutos de la ida

    @property
    def is_default(self) -> bool:
        """True when every dimension allows everything."""
        return self == FilterSpec()


def _segment_in_windows(segment: Segment | None, departure: TimeWindow, arrival: TimeWindow) -> bool:
    if segment is None:
        return True
    return departure.contains(segment.departure_minute) and arrival.contains(segment.arrival_minute)


def matches(offer: Offer, spec: FilterSpec, passengers: Passengers) -> bool:
    """Evaluate every predicate of spec against one offer."""
    if spec.stops is not None and stops_category(offer.max_stops) not in spec.stops:
        return False

    if spec.airlines is not None:
        if not spec.airlines or not offer.carriers <= spec.airlines:
            return False

    if spec.airports is not None:
        if not spec.airports:
            return False
        for segment in offer.segments:
            if segment.departure_airport not in spec.airports:
                return False
            if segment.arrival_airport not in spec.airports:
                return False

    if not _segment_in_windows(offer.outbound, spec.outbound_departure, spec.outbound_arrival):
        return False
    if not _segment_in_windows(offer.inbound, spec.return_departure, spec.return_arrival):
        return False

    if price_per_person(offer.price, passengers) > spec.price_ceiling:
        return False

    if offer.duration is not None and offer.duration > spec.duration_ceiling:
        return False

    return True


def apply_filters(offers: list[Offer], spec: FilterSpec, passengers: Passengers) -> list[Offer]:
    """Return the offers that satisfy every predicate, preserving order."""
    if spec.is_default:
        return list(offers)
    return [offer for offer in offers if matches(offer, spec, passengers)]
