"""Console rendering for the CLI.

Imprime ofertas y destinos en consola. No es la capa de presentación
de la app (eso vive fuera del engine); sirve para probar búsquedas
desde la terminal.
"""

from benetrip.budget import BudgetSelection, BudgetTier
from benetrip.models import AggregatedDestination, Offer, Passengers, price_per_person
from benetrip.results import ResultsView, ViewState, arrival_display

CURRENCY_SYMBOLS: dict[str, str] = {"BRL": "R$", "USD": "US$", "EUR": "€"}

TIER_MESSAGES: dict[BudgetTier, str] = {
    BudgetTier.IDEAL: "",
    BudgetTier.GOOD: "Encontramos los mejores destinos dentro de tu presupuesto de {budget}.",
    BudgetTier.BELOW: "No hubo muchas opciones cerca del presupuesto ideal, pero hay {count} destinos dentro de {budget}.",
    BudgetTier.NONE: "Ningún destino dentro del presupuesto de {budget}.",
}


def format_price(value: float, currency: str) -> str:
    """Ej: 'R$ 1,234' o 'US$ 511'."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{symbol} {value:,.0f}"


def format_duration(minutes: int | None) -> str:
    if minutes is None:
        return "?"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins:02d}m"


def stops_text(stops: int) -> str:
    if stops == 0:
        return "Directo"
    return "1 escala" if stops == 1 else f"{stops} escalas"


def format_offer(offer: Offer, passengers: Passengers, currency: str) -> str:
    """Format one offer as a multi-line console card."""
    ppp = price_per_person(offer.price, passengers)
    lines = [f"💰 {format_price(ppp, currency)} por persona ({format_price(offer.price, currency)} total)"]

    for label, segment in (("Ida", offer.outbound), ("Vuelta", offer.inbound)):
        if segment is None or segment.first is None:
            continue
        arrival = arrival_display(segment)
        airline = segment.first.airline_name or segment.first.airline
        lines.append(
            f"  {label}: {segment.departure_airport} {segment.first.departure_time} → "
            f"{arrival.airport} {arrival.label} | {format_duration(segment.total_duration)} | "
            f"{stops_text(segment.stops)} | {airline}"
        )

    if offer.gate_name:
        lines.append(f"  🏷️ {offer.gate_name}")
    others = offer.terms[1:6]
    if others:
        lines.append("  Otras agencias: " + ", ".join(
            f"{t.gate_name} {format_price(price_per_person(t.price, passengers), currency)}" for t in others
        ))
    return "\n".join(lines)


def print_results(view: ResultsView, currency: str, limit: int | None = None) -> None:
    """Print the ranked offers of a results view."""
    state = view.state
    if state is ViewState.NO_RESULTS:
        print("\nNo se encontraron vuelos para esta búsqueda.")
        return
    if state is ViewState.ALL_FILTERED:
        print("\nHay vuelos, pero ninguno pasa los filtros actuales. Limpiá los filtros para verlos.")
        return

    offers = view.visible()
    if limit is not None:
        offers = offers[:limit]

    print(f"\n{'=' * 60}")
    print(f"{len(view.visible())} ofertas (orden: {view.sort.value})")
    print(f"{'=' * 60}")
    for i, offer in enumerate(offers, 1):
        _safe_print(f"\n{i}. {format_offer(offer, view.passengers, currency)}")


def print_destinations(
    destinations: list[AggregatedDestination],
    currency: str,
    selection: BudgetSelection | None = None,
) -> None:
    """Print discovery results, honoring the budget tier if there is one."""
    if selection is not None:
        message = TIER_MESSAGES[selection.tier].format(
            budget=format_price(selection.budget, currency),
            count=len(selection.destinations),
        )
        if message:
            _safe_print(f"\n🐕 {message}")
        destinations = selection.destinations

    for i, dest in enumerate(destinations, 1):
        _safe_print(
            f"{i}. {dest.name} ({dest.country}) | {format_price(dest.price, currency)} "
            f"| {dest.combination.label} | {dest.match_count} combinación(es)"
        )


def _safe_print(text: str) -> None:
    # Consolas Windows (cp1252) no soportan emojis
    try:
        print(text)
    except UnicodeEncodeError:
        print(text.encode("ascii", errors="ignore").decode("ascii"))
