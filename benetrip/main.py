"""Entry point for the flight offer discovery engine.

Punto de entrada para probar el engine desde la terminal. Carga la
configuración y variables de entorno, y ejecuta el comando pedido.

Uso:
    python -m benetrip.main search GRU LIS 2026-05-10 --return 2026-05-20
    python -m benetrip.main discover GRU --out 2026-05-10 --back 2026-05-20 --budget 3000
    python -m benetrip.main link GRU LIS 2026-05-10 2026-05-20
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from benetrip.adapters import TravelpayoutsBackend
from benetrip.config import load_settings
from benetrip.filters import DIRECT, ONE_STOP, FilterSpec
from benetrip.models import AppSettings, Passengers, SearchQuery
from benetrip.orchestrator import CombinationOrchestrator, DestinationScope, DiscoveryRequest, DiscoveryStatus
from benetrip.ranking import SortStrategy
from benetrip.report import print_destinations, print_results
from benetrip.results import ResultsView
from benetrip.session import SearchSession, SearchStatus
from benetrip.wire import build_flight_search_url

# Configurar logging con formato legible
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

STOPS_CHOICES = {"direct": {DIRECT}, "max1": {DIRECT, ONE_STOP}, "all": None}


async def run_search(args: argparse.Namespace, settings: AppSettings) -> int:
    """Run a single-route search and print the ranked offers."""
    passengers = Passengers(adults=args.adults, children=args.children, infants=args.infants)
    query = SearchQuery(
        origin=args.origin,
        destination=args.destination,
        departure_date=args.departure_date,
        return_date=args.return_date,
        passengers=passengers,
        currency=args.currency or settings.default_currency,
    )

    view = ResultsView(passengers, sort=SortStrategy(args.sort), per_page=settings.results_per_page)
    stops = STOPS_CHOICES[args.stops]
    if stops is not None:
        view.set_filters(FilterSpec(stops=frozenset(stops)))

    session = SearchSession(TravelpayoutsBackend(settings), settings, on_render=view.set_offers)
    outcome = await session.run(query)

    if outcome.status is SearchStatus.FAILED:
        logger.error("Búsqueda fallida: %s", outcome.error)
        return 1
    if outcome.status is SearchStatus.TIMEOUT_EXHAUSTED:
        logger.warning("El backend no terminó a tiempo; mostrando resultados parciales.")

    view.set_offers(outcome.offers)
    print_results(view, query.currency, limit=args.limit)
    return 0


async def run_discover(args: argparse.Namespace, settings: AppSettings) -> int:
    """Run a multi-date discovery search and print the destinations."""
    request = DiscoveryRequest(
        origin=args.origin,
        outbound_dates=args.outbound_dates,
        return_dates=args.return_dates,
        preferences=args.preferences or [],
        currency=args.currency or settings.default_currency,
        scope=DestinationScope(args.scope),
        origin_country=args.origin_country,
        budget=args.budget,
    )

    orchestrator = CombinationOrchestrator(TravelpayoutsBackend(settings), settings)
    result = await orchestrator.run(request)

    if result.status is DiscoveryStatus.FAILED:
        logger.error("Descubrimiento fallido: %s", result.error)
        return 1
    if result.status is DiscoveryStatus.EMPTY:
        print("\nNo encontramos destinos con precio para esas fechas. Probá otras fechas u otra ciudad de origen.")
        return 0

    print_destinations(result.destinations, request.currency, result.selection)
    return 0


def run_link(args: argparse.Namespace) -> int:
    print(build_flight_search_url(
        args.origin.upper(),
        args.destination.upper(),
        args.departure_date,
        args.return_date,
        args.currency or "BRL",
        adults=args.adults,
        children=args.children,
        infants=args.infants,
    ))
    return 0


def _add_passenger_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--adults", type=int, default=1)
    parser.add_argument("--children", type=int, default=0)
    parser.add_argument("--infants", type=int, default=0)
    parser.add_argument("--currency", help="Moneda (BRL, USD, EUR)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Benetrip: búsqueda y descubrimiento de ofertas de vuelos",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Buscar vuelos para una ruta")
    search.add_argument("origin")
    search.add_argument("destination")
    search.add_argument("departure_date", help="YYYY-MM-DD")
    search.add_argument("--return", dest="return_date", help="YYYY-MM-DD")
    search.add_argument("--sort", choices=[s.value for s in SortStrategy], default="cheapest")
    search.add_argument("--stops", choices=sorted(STOPS_CHOICES), default="all")
    search.add_argument("--limit", type=int, default=10)
    _add_passenger_args(search)

    discover = sub.add_parser("discover", help="Descubrir destinos con varias fechas")
    discover.add_argument("origin")
    discover.add_argument("--out", dest="outbound_dates", action="append", required=True)
    discover.add_argument("--back", dest="return_dates", action="append", required=True)
    discover.add_argument("--pref", dest="preferences", action="append")
    discover.add_argument("--scope", choices=[s.value for s in DestinationScope], default="tanto_faz")
    discover.add_argument("--origin-country")
    discover.add_argument("--budget", type=float)
    discover.add_argument("--currency", help="Moneda (BRL, USD, EUR)")

    link = sub.add_parser("link", help="Generar deep link de búsqueda externa")
    link.add_argument("origin")
    link.add_argument("destination")
    link.add_argument("departure_date")
    link.add_argument("return_date", nargs="?")
    _add_passenger_args(link)

    return parser


async def main(args: argparse.Namespace) -> int:
    """Main execution flow.

    Flujo:
    1. Cargar configuración
    2. Ejecutar el comando
    """
    if args.command == "link":
        return run_link(args)

    # === Cargar configuración ===
    try:
        settings = load_settings()
    except (FileNotFoundError, ValueError) as e:
        logger.error("Error de configuración: %s", e)
        return 1

    try:
        if args.command == "search":
            return await run_search(args, settings)
        return await run_discover(args, settings)
    except ValueError as e:
        logger.error("Parámetros inválidos: %s", e)
        return 1


def cli() -> None:
    # Cargar .env para ejecución local
    load_dotenv()

    parsed = build_parser().parse_args()
    sys.exit(asyncio.run(main(parsed)))


if __name__ == "__main__":
    cli()
