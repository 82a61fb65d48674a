"""Travelpayouts / Aviasales flight search backend.

Habla con el proxy de Benetrip que envuelve la Flight Search API de
Travelpayouts. La búsqueda es asíncrona del lado del backend: primero se
envía, después se consultan los resultados por search_id hasta que el
backend marca completed.

Endpoints (relativos a settings.api_base_url):
    POST /api/flight-search        → {search_id, currency_rates}
    GET  /api/flight-results?uuid= → {proposals[], total, completed, currency_rates?}
    POST /api/flight-click         → {url, method, params?}
    POST /api/search-destinations  → {destinations[], _meta}
"""

import json
import logging

import httpx

from benetrip.adapters.base import BaseBackend
from benetrip.models import (
    AppSettings,
    BookingLink,
    Combination,
    DestinationFare,
    Offer,
    ResultsPage,
    SearchQuery,
    SubmissionResponse,
)

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/flight-search"
RESULTS_PATH = "/api/flight-results"
CLICK_PATH = "/api/flight-click"
DESTINATIONS_PATH = "/api/search-destinations"


def _parse_rates(raw) -> dict[str, float]:
    """Parse a currency rate table, skipping entries that aren't numbers."""
    rates: dict[str, float] = {}
    if not isinstance(raw, dict):
        return rates
    for code, value in raw.items():
        try:
            rates[str(code).lower()] = float(value)
        except (TypeError, ValueError):
            logger.debug("Tasa de cambio inválida para %s: %r", code, value)
    return rates


def _json_object(response: httpx.Response) -> dict:
    """Decode the body, which must be a JSON object (ValueError otherwise)."""
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"Respuesta inválida del backend: se esperaba un objeto, llegó {type(data).__name__}")
    return data


def _total(raw, fallback: int) -> int:
    try:
        return int(raw) if raw else fallback
    except (TypeError, ValueError):
        return fallback


class TravelpayoutsBackend(BaseBackend):
    """HTTP backend for the Benetrip flight search proxy."""

    def __init__(self, settings: AppSettings) -> None:
        super().__init__(settings)
        self.base_url = settings.api_base_url.rstrip("/")

    @property
    def source_name(self) -> str:
        return "travelpayouts"

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.settings.user_agent,
        }

    async def submit_search(self, query: SearchQuery) -> SubmissionResponse:
        """POST the search and return its search_id.

        Un status no-2xx levanta httpx.HTTPStatusError; una respuesta sin
        search_id se considera inválida (ValueError).
        """
        logger.info(
            "✈️ Enviando búsqueda %s → %s | %s%s | %da %dc %di",
            query.origin, query.destination, query.departure_date,
            f" → {query.return_date}" if query.return_date else " (solo ida)",
            query.passengers.adults, query.passengers.children, query.passengers.infants,
        )

        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}{SEARCH_PATH}",
                json=query.to_payload(),
                headers=self._headers(),
            )
            response.raise_for_status()

        data = _json_object(response)
        search_id = data.get("search_id")
        if not search_id:
            raise ValueError("Respuesta inválida del backend: falta search_id")

        return SubmissionResponse(
            search_id=str(search_id),
            currency_rates=_parse_rates(data.get("currency_rates")),
        )

    async def fetch_results(
        self,
        search_id: str,
        currency: str,
        rates: dict[str, float] | None = None,
    ) -> ResultsPage:
        """GET the current proposal set for search_id."""
        params = {"uuid": search_id, "currency": currency}
        if rates:
            params["rates"] = json.dumps(rates, separators=(",", ":"))

        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            response = await client.get(
                f"{self.base_url}{RESULTS_PATH}",
                params=params,
                headers=self._headers(),
            )
            response.raise_for_status()

        data = _json_object(response)
        proposals = data.get("proposals") or []

        offers: list[Offer] = []
        for proposal in proposals:
            if not isinstance(proposal, dict):
                continue
            try:
                offer = Offer.from_dict(proposal, currency=currency)
            except (TypeError, ValueError, AttributeError) as e:
                # Una propuesta rota no invalida el resto de la página
                logger.debug("Propuesta descartada en %s: %s", search_id, e)
                continue
            # Sin precio no hay nada que mostrar ni que reservar
            if offer.price <= 0:
                continue
            offers.append(offer)

        return ResultsPage(
            offers=offers,
            total=_total(data.get("total"), len(offers)),
            completed=bool(data.get("completed", False)),
            currency_rates=_parse_rates(data.get("currency_rates")),
        )

    async def request_booking_link(self, search_id: str, terms_url: str) -> BookingLink:
        logger.info("🔗 Pidiendo link de reserva: search=%s... terms=%s", search_id[:8], terms_url)

        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}{CLICK_PATH}",
                json={"search_id": search_id, "terms_url": terms_url},
                headers=self._headers(),
            )
            response.raise_for_status()

        data = _json_object(response)
        url = data.get("url")
        if not url:
            raise ValueError("Respuesta de click sin url")

        return BookingLink(
            url=str(url),
            method=str(data.get("method") or "GET").upper(),
            params=dict(data.get("params") or {}),
            gate_id=str(data.get("gate_id") or ""),
        )

    async def search_destinations(
        self,
        origin: str,
        combination: Combination,
        preferences: list[str],
        currency: str,
        scope: str,
    ) -> list[DestinationFare]:
        body = {
            "origem": origin,
            "dataIda": combination.outbound_date,
            "dataVolta": combination.return_date,
            "preferencias": list(preferences),
            "moeda": currency,
            "escopoDestino": scope,
        }

        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}{DESTINATIONS_PATH}",
                json=body,
                headers=self._headers(),
            )
            response.raise_for_status()

        data = _json_object(response)
        meta = data.get("_meta") or {}
        if meta:
            logger.debug("Descubrimiento %s %s: meta=%s", origin, combination.label, meta)

        return [
            DestinationFare.from_dict(d)
            for d in data.get("destinations") or []
            if isinstance(d, dict)
        ]
