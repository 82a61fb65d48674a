"""Abstract base class for flight-search backends.

Todos los backends heredan de BaseBackend. La sesión de polling y el
orquestador de combinaciones solo hablan con esta interfaz, así pueden
correr contra el backend HTTP real o contra fakes en los tests.
"""

from abc import ABC, abstractmethod

from benetrip.models import (
    AppSettings,
    BookingLink,
    Combination,
    DestinationFare,
    ResultsPage,
    SearchQuery,
    SubmissionResponse,
)


class BaseBackend(ABC):
    """Base class for flight search backends."""

    def __init__(self, settings: AppSettings) -> None:
        """Initialize with global app settings.

        Recibe los settings globales (URL base, timeout, user-agent)
        para que cada backend los use en sus requests.
        """
        self.settings = settings

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Unique identifier for this backend."""
        ...

    @abstractmethod
    async def submit_search(self, query: SearchQuery) -> SubmissionResponse:
        """Start a search. Returns the opaque search_id and the initial rate table.

        Un status no-2xx se propaga como httpx.HTTPStatusError.
        """
        ...

    @abstractmethod
    async def fetch_results(
        self,
        search_id: str,
        currency: str,
        rates: dict[str, float] | None = None,
    ) -> ResultsPage:
        """Fetch the backend's full current proposal set for a search."""
        ...

    @abstractmethod
    async def request_booking_link(self, search_id: str, terms_url: str) -> BookingLink:
        """Resolve the redirect target for one selling term.

        Solo se llama ante un click del usuario.
        """
        ...

    @abstractmethod
    async def search_destinations(
        self,
        origin: str,
        combination: Combination,
        preferences: list[str],
        currency: str,
        scope: str,
    ) -> list[DestinationFare]:
        """Discovery search: destinations reachable from origin for one date pair."""
        ...
