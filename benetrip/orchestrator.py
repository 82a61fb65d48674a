"""Multi-date discovery orchestrator.

Para búsquedas con varias fechas posibles, arma todas las combinaciones
ida × vuelta válidas, las consulta en batches de pocos requests
simultáneos y junta todo en un único set de destinos sin duplicados.

Los batches son estrictamente secuenciales: cada batch se mergea antes
de lanzar el siguiente, así nunca hay más de batch_size requests
pendientes contra el backend.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import httpx

from benetrip.adapters.base import BaseBackend
from benetrip.budget import BudgetSelection, select_budget_tier
from benetrip.errors import DiscoveryError
from benetrip.models import (
    AggregatedDestination,
    AppSettings,
    Combination,
    DestinationFare,
    DestinationOption,
    normalize_code,
    normalize_text,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

MAX_DATES_PER_SIDE = 3


class DestinationScope(str, Enum):
    ANY = "tanto_faz"
    DOMESTIC = "nacional"
    INTERNATIONAL = "internacional"


class DiscoveryStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"  # Ningún destino con precio en ninguna combinación
    FAILED = "failed"  # Fallaron todas las combinaciones


@dataclass
class DiscoveryRequest:
    """Input of a multi-date discovery search."""

    origin: str
    outbound_dates: list[str]
    return_dates: list[str]
    preferences: list[str] = field(default_factory=list)
    currency: str = "BRL"
    scope: DestinationScope = DestinationScope.ANY
    origin_country: str | None = None  # Para aplicar el scope también localmente
    budget: float | None = None

    def __post_init__(self) -> None:
        self.origin = normalize_code(self.origin, "origin")
        self.currency = normalize_code(self.currency, "currency")
        self.scope = DestinationScope(self.scope)


@dataclass
class DiscoveryResult:
    status: DiscoveryStatus
    destinations: list[AggregatedDestination] = field(default_factory=list)
    combinations: list[Combination] = field(default_factory=list)
    failed_combinations: list[Combination] = field(default_factory=list)
    selection: BudgetSelection | None = None
    error: DiscoveryError | None = None


def build_combinations(outbound_dates: list[str], return_dates: list[str]) -> list[Combination]:
    """Cross product of outbound × return dates, keeping only return > outbound.

    Raises:
        ValueError: Más de MAX_DATES_PER_SIDE fechas de un lado, o una fecha inválida.
    """
    outbound = list(dict.fromkeys(outbound_dates))
    inbound = list(dict.fromkeys(return_dates))

    if len(outbound) > MAX_DATES_PER_SIDE or len(inbound) > MAX_DATES_PER_SIDE:
        raise ValueError(f"Máximo {MAX_DATES_PER_SIDE} fechas de ida y {MAX_DATES_PER_SIDE} de vuelta.")

    combinations: list[Combination] = []
    for out_str in outbound:
        out_date = parse_iso_date(out_str)
        if out_date is None:
            raise ValueError(f"Fecha de ida inválida: {out_str!r}")
        for ret_str in inbound:
            ret_date = parse_iso_date(ret_str)
            if ret_date is None:
                raise ValueError(f"Fecha de vuelta inválida: {ret_str!r}")
            if ret_date > out_date:
                combinations.append(Combination(outbound_date=out_str, return_date=ret_str))

    return combinations


def merge_destinations(
    merged: dict[str, AggregatedDestination],
    combination: Combination,
    fares: list[DestinationFare],
) -> None:
    """Merge one combination's destinations into the shared map.

    Reglas:
    1. Destino nuevo → se inserta con el precio de esta combinación
    2. Destino ya visto con precio estrictamente menor → reemplaza la mejor
       oferta y su combinación
    3. Siempre se acumula la opción y se incrementa el contador
    """
    for fare in fares:
        option = DestinationOption(
            combination=combination,
            price=fare.price,
            segment_summary=fare.summary(),
        )
        key = fare.identity_key
        existing = merged.get(key)

        if existing is None:
            merged[key] = AggregatedDestination(
                key=key,
                best=fare,
                combination=combination,
                match_count=1,
                options=[option],
            )
            continue

        if fare.price < existing.best.price:
            existing.best = fare
            existing.combination = combination
        existing.options.append(option)
        existing.match_count += 1


class CombinationOrchestrator:
    """Runs a discovery search across every valid date combination."""

    def __init__(self, backend: BaseBackend, settings: AppSettings) -> None:
        self.backend = backend
        self.settings = settings

    async def run(self, request: DiscoveryRequest) -> DiscoveryResult:
        """Execute all combinations in bounded batches and merge the results.

        Returns:
            DiscoveryResult ordenado por mejor precio. EMPTY si ningún destino
            tuvo precio; FAILED si fallaron todas las combinaciones. Si el
            request trae budget, selection tiene el tier elegido.
        """
        combinations = build_combinations(request.outbound_dates, request.return_dates)
        if not combinations:
            logger.warning("Ninguna combinación válida (la vuelta debe ser posterior a la ida).")
            return DiscoveryResult(status=DiscoveryStatus.EMPTY)

        batch_size = max(self.settings.combination_batch_size, 1)
        merged: dict[str, AggregatedDestination] = {}
        failed: list[Combination] = []

        logger.info(
            "🔍 Descubrimiento desde %s: %d combinaciones en batches de %d",
            request.origin, len(combinations), batch_size,
        )

        for i in range(0, len(combinations), batch_size):
            batch = combinations[i:i + batch_size]
            results = await asyncio.gather(*[self._search_combination(request, c) for c in batch])

            for combination, fares in zip(batch, results):
                if fares is None:
                    failed.append(combination)
                    continue
                merge_destinations(merged, combination, self._in_scope(request, fares))

            logger.info(
                "Batch %d/%d mergeado: %d destinos únicos hasta ahora",
                i // batch_size + 1, -(-len(combinations) // batch_size), len(merged),
            )

        if len(failed) == len(combinations):
            error = DiscoveryError(f"Fallaron las {len(combinations)} combinaciones.")
            logger.error("❌ %s", error)
            return DiscoveryResult(
                status=DiscoveryStatus.FAILED,
                combinations=combinations,
                failed_combinations=failed,
                error=error,
            )

        destinations = sorted(merged.values(), key=lambda d: d.price)

        if not destinations:
            logger.info("Ningún destino con precio disponible.")
            return DiscoveryResult(
                status=DiscoveryStatus.EMPTY,
                combinations=combinations,
                failed_combinations=failed,
            )

        selection = None
        if request.budget:
            selection = select_budget_tier(destinations, request.budget)

        return DiscoveryResult(
            status=DiscoveryStatus.OK,
            destinations=destinations,
            combinations=combinations,
            failed_combinations=failed,
            selection=selection,
        )

    async def _search_combination(
        self,
        request: DiscoveryRequest,
        combination: Combination,
    ) -> list[DestinationFare] | None:
        """Query one combination. Returns None if the request failed."""
        try:
            fares = await self.backend.search_destinations(
                request.origin,
                combination,
                request.preferences,
                request.currency,
                request.scope.value,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Combinación %s falló: %s", combination.label, e)
            return None

        # Destinos sin precio no participan del merge
        priced = [f for f in fares if f.price > 0]
        logger.info("Combinación %s: %d destinos con precio", combination.label, len(priced))
        return priced

    @staticmethod
    def _in_scope(request: DiscoveryRequest, fares: list[DestinationFare]) -> list[DestinationFare]:
        if request.scope is DestinationScope.ANY or not request.origin_country:
            return fares
        home = normalize_text(request.origin_country)
        if request.scope is DestinationScope.DOMESTIC:
            return [f for f in fares if normalize_text(f.country) == home]
        return [f for f in fares if normalize_text(f.country) != home]
