"""Results view: facets + filters + ranking over the live offer set.

Es lo que consume la capa de presentación. Cada vez que cambia el set
de ofertas se recalculan las facetas completas; filtros y ranking se
aplican sobre la marcha y nunca modifican las ofertas.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from benetrip.facets import Facets, recompute
from benetrip.filters import FilterSpec, apply_filters
from benetrip.models import Offer, Passengers, Segment
from benetrip.ranking import SortStrategy, best_score, rank_offers

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 10


class ViewState(str, Enum):
    NO_RESULTS = "no_results"  # La búsqueda no trajo nada
    ALL_FILTERED = "all_filtered"  # Hay ofertas pero los filtros las ocultan todas
    RESULTS = "results"


@dataclass(frozen=True)
class ArrivalDisplay:
    """Arrival time plus the '+N day' indicator for overnight flights."""

    time: str
    airport: str
    day_offset: int = 0

    @property
    def label(self) -> str:
        if self.day_offset > 0:
            return f"{self.time} +{self.day_offset}"
        return self.time


def arrival_display(segment: Segment) -> ArrivalDisplay:
    last = segment.last
    return ArrivalDisplay(
        time=last.arrival_time if last else "",
        airport=segment.arrival_airport,
        day_offset=segment.arrival_day_offset,
    )


@dataclass
class Highlights:
    cheapest: Offer | None = None
    fastest: Offer | None = None
    best: Offer | None = None


class ResultsView:
    """Filterable, sortable, paginated view over a search's offers."""

    def __init__(
        self,
        passengers: Passengers,
        sort: SortStrategy = SortStrategy.CHEAPEST,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> None:
        self.passengers = passengers
        self.sort = SortStrategy(sort)
        self.per_page = per_page
        self.filters = FilterSpec()
        self._offers: list[Offer] = []
        self.facets: Facets = recompute([], passengers)

    @property
    def offers(self) -> list[Offer]:
        return list(self._offers)

    def set_offers(self, offers: list[Offer]) -> None:
        """Replace the offer set and recompute facets. Usado como callback de render."""
        self._offers = list(offers)
        self.facets = recompute(self._offers, self.passengers)
        logger.debug("Vista actualizada: %d ofertas", len(self._offers))

    def clear(self) -> None:
        self.set_offers([])
        self.filters = FilterSpec()

    def set_filters(self, spec: FilterSpec) -> None:
        self.filters = spec

    def clear_filters(self) -> None:
        self.filters = FilterSpec()

    def set_sort(self, sort: SortStrategy) -> None:
        self.sort = SortStrategy(sort)

    def effective_filters(self) -> FilterSpec:
        """Filters actually applied.

        El filtro de aeropuertos se ignora cuando la faceta no está
        habilitada (búsqueda por aeropuerto puntual).
        """
        if self.filters.airports is not None and not self.facets.airports_enabled:
            return replace(self.filters, airports=None)
        return self.filters

    def visible(self) -> list[Offer]:
        """Filtered and ranked offers."""
        filtered = apply_filters(self._offers, self.effective_filters(), self.passengers)
        return rank_offers(filtered, self.sort, self.facets, self.passengers)

    @property
    def state(self) -> ViewState:
        if not self._offers:
            return ViewState.NO_RESULTS
        if not apply_filters(self._offers, self.effective_filters(), self.passengers):
            return ViewState.ALL_FILTERED
        return ViewState.RESULTS

    @property
    def can_clear_filters(self) -> bool:
        """Whether the UI should offer a 'clear filters' action."""
        return not self.filters.is_default

    def page(self, number: int) -> list[Offer]:
        """One page of visible offers (1-based)."""
        if number < 1:
            raise ValueError("Las páginas empiezan en 1.")
        start = (number - 1) * self.per_page
        return self.visible()[start:start + self.per_page]

    @property
    def page_count(self) -> int:
        return -(-len(self.visible()) // self.per_page)

    def highlights(self) -> Highlights:
        """Cheapest, fastest and best offer among the visible ones."""
        filtered = apply_filters(self._offers, self.effective_filters(), self.passengers)
        if not filtered:
            return Highlights()
        return Highlights(
            cheapest=rank_offers(filtered, SortStrategy.CHEAPEST, self.facets, self.passengers)[0],
            fastest=rank_offers(filtered, SortStrategy.FASTEST, self.facets, self.passengers)[0],
            best=min(filtered, key=lambda o: best_score(o, self.facets, self.passengers)),
        )
