"""Shared data models for the flight offer discovery engine.

Modelos canónicos del engine: búsqueda, tramos, segmentos, ofertas y
términos de venta. Los adapters traducen el JSON del backend a estos
objetos; el resto del engine nunca toca diccionarios crudos.
"""

import math
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date

# Códigos IATA (aeropuerto/ciudad) y de moneda: 3 letras mayúsculas
CODE_RE = re.compile(r"^[A-Z]{3}$")

# Y = Economy, C = Business
VALID_TRIP_CLASSES = {"Y", "C"}


def normalize_code(value: str, field_name: str) -> str:
    """Upper-case and validate a 3-letter IATA-like code."""
    code = (value or "").strip().upper()
    if not CODE_RE.match(code):
        raise ValueError(f"{field_name} debe tener 3 letras, ej.: GRU, LIS (recibido: {value!r})")
    return code


def normalize_text(value: str) -> str:
    """Lower-case text and strip accents. Usado para identidad de destinos."""
    decomposed = unicodedata.normalize("NFD", (value or "").strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def parse_iso_date(value: str) -> date | None:
    """Parse a YYYY-MM-DD string, returning None when it can't be parsed."""
    try:
        return date.fromisoformat((value or "")[:10])
    except ValueError:
        return None


def minute_of_day(time_str: str) -> int | None:
    """Convert 'HH:MM' (or 'HH:MM:SS') into minutes since midnight (0-1439)."""
    parts = (time_str or "").split(":")
    if len(parts) < 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def day_difference(departure_date: str, arrival_date: str) -> int:
    """Calendar-day difference between arrival and departure.

    Ambas fechas se truncan a medianoche, así que un vuelo que sale
    23:30 y llega 01:15 del día siguiente devuelve 1. Si alguna fecha
    falta o no se puede parsear, devuelve 0.
    """
    dep = parse_iso_date(departure_date)
    arr = parse_iso_date(arrival_date)
    if dep is None or arr is None:
        return 0
    return (arr - dep).days


def _int_or_none(value) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _float_or_zero(value) -> float:
    """Parse a price; anything non-numeric or non-finite becomes 0 (sin precio)."""
    try:
        number = float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _dicts(value) -> list[dict]:
    """Keep only the dict items of a JSON list. El backend a veces manda nulls."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass(frozen=True)
class Passengers:
    """Passenger counts for a search."""

    adults: int = 1
    children: int = 0
    infants: int = 0

    def __post_init__(self) -> None:
        if min(self.adults, self.children, self.infants) < 0:
            raise ValueError("La cantidad de pasajeros no puede ser negativa.")

    @property
    def total(self) -> int:
        """Full headcount, never below 1 (evita división por cero)."""
        return max(self.adults + self.children + self.infants, 1)


def price_per_person(total_price: float, passengers: Passengers) -> int:
    """Price per passenger, rounded half-up.

    El total del backend ya incluye adultos, niños y bebés, así que el
    divisor es la cantidad total de pasajeros (mínimo 1), no solo adultos.
    """
    return math.floor(total_price / passengers.total + 0.5)


@dataclass
class SearchQuery:
    """One search submission.

    Se crea una vez por búsqueda. En modo descubrimiento el destino
    puede omitirse (None).
    """

    origin: str
    departure_date: str  # YYYY-MM-DD
    destination: str | None = None
    return_date: str | None = None
    passengers: Passengers = field(default_factory=Passengers)
    currency: str = "BRL"
    trip_class: str = "Y"

    def __post_init__(self) -> None:
        self.origin = normalize_code(self.origin, "origin")
        if self.destination is not None:
            self.destination = normalize_code(self.destination, "destination")
        self.currency = normalize_code(self.currency, "currency")

        if parse_iso_date(self.departure_date) is None:
            raise ValueError(f"departure_date inválida: {self.departure_date!r} (formato YYYY-MM-DD)")
        if self.return_date is not None and parse_iso_date(self.return_date) is None:
            raise ValueError(f"return_date inválida: {self.return_date!r} (formato YYYY-MM-DD)")

        if self.passengers.infants > self.passengers.adults:
            raise ValueError("Cada bebé necesita un adulto: infants no puede superar adults.")

        self.trip_class = self.trip_class.upper()
        if self.trip_class not in VALID_TRIP_CLASSES:
            raise ValueError(f"trip_class debe ser uno de {VALID_TRIP_CLASSES}")

    @property
    def is_round_trip(self) -> bool:
        return self.return_date is not None

    def to_payload(self) -> dict:
        """Request body for the search submission endpoint."""
        payload = {
            "origin": self.origin,
            "destination": self.destination,
            "departure_date": self.departure_date,
            "adults": self.passengers.adults,
            "children": self.passengers.children,
            "infants": self.passengers.infants,
            "trip_class": self.trip_class,
            "currency": self.currency,
        }
        if self.return_date:
            payload["return_date"] = self.return_date
        return payload


@dataclass
class Flight:
    """A single flight leg inside a segment."""

    airline: str = ""  # Código IATA de la aerolínea
    airline_name: str = ""
    departure_airport: str = ""
    arrival_airport: str = ""
    departure_date: str = ""  # YYYY-MM-DD (hora local)
    departure_time: str = ""  # HH:MM
    arrival_date: str = ""
    arrival_time: str = ""
    duration: int | None = None  # Minutos

    @staticmethod
    def from_dict(data: dict) -> "Flight":
        airline = str(data.get("airline") or data.get("operating_carrier") or "")
        return Flight(
            airline=airline,
            airline_name=str(data.get("airline_name") or airline),
            departure_airport=str(data.get("departure_airport") or data.get("departure") or ""),
            arrival_airport=str(data.get("arrival_airport") or data.get("arrival") or ""),
            departure_date=str(data.get("departure_date") or ""),
            departure_time=str(data.get("departure_time") or ""),
            arrival_date=str(data.get("arrival_date") or ""),
            arrival_time=str(data.get("arrival_time") or ""),
            duration=_int_or_none(data.get("duration")),
        )

    @property
    def day_offset(self) -> int:
        """Days between departure and arrival (the '+N' indicator)."""
        return day_difference(self.departure_date, self.arrival_date)


@dataclass
class Segment:
    """One direction of a trip (outbound or return), made of one or more legs."""

    flights: list[Flight] = field(default_factory=list)
    stops: int = 0
    total_duration: int | None = None  # Minutos, None si el backend no lo informa

    @staticmethod
    def from_dict(data: dict) -> "Segment":
        flights = [Flight.from_dict(f) for f in _dicts(data.get("flights") or data.get("flight"))]

        # stops siempre es legs - 1; si no hay legs usamos lo que diga el backend
        if flights:
            stops = len(flights) - 1
        else:
            stops = _int_or_none(data.get("stops")) or 0

        total_duration = _int_or_none(data.get("total_duration"))
        if total_duration is None:
            leg_durations = [f.duration for f in flights if f.duration is not None]
            if leg_durations and len(leg_durations) == len(flights):
                total_duration = sum(leg_durations)

        return Segment(flights=flights, stops=stops, total_duration=total_duration)

    @property
    def first(self) -> Flight | None:
        return self.flights[0] if self.flights else None

    @property
    def last(self) -> Flight | None:
        return self.flights[-1] if self.flights else None

    @property
    def departure_airport(self) -> str:
        return self.first.departure_airport if self.first else ""

    @property
    def arrival_airport(self) -> str:
        return self.last.arrival_airport if self.last else ""

    @property
    def departure_minute(self) -> int | None:
        return minute_of_day(self.first.departure_time) if self.first else None

    @property
    def arrival_minute(self) -> int | None:
        return minute_of_day(self.last.arrival_time) if self.last else None

    @property
    def arrival_day_offset(self) -> int:
        """Days between the first departure and the final arrival."""
        if not self.flights:
            return 0
        return day_difference(self.first.departure_date, self.last.arrival_date)

    @property
    def airlines(self) -> set[str]:
        return {f.airline for f in self.flights if f.airline}

    def summary(self) -> str:
        """Short human-readable description. Ej: 'GRU 08:00 → LIS 20:15 (directo)'."""
        if not self.flights:
            return ""
        stops_text = "directo" if self.stops == 0 else f"{self.stops} escala(s)"
        arrival = self.last.arrival_time
        if self.arrival_day_offset > 0:
            arrival = f"{arrival} +{self.arrival_day_offset}"
        return (
            f"{self.departure_airport} {self.first.departure_time} → "
            f"{self.arrival_airport} {arrival} ({stops_text})"
        )


@dataclass(frozen=True)
class Baggage:
    """Baggage allowance for one segment."""

    handbag: bool = False
    checked: bool = False

    @staticmethod
    def from_dict(data: dict) -> "Baggage":
        return Baggage(handbag=bool(data.get("handbag")), checked=bool(data.get("checked")))


@dataclass
class Term:
    """One selling alternative (gate) for an offer."""

    gate_name: str
    url: str  # terms_url que se manda al endpoint de click
    price: float
    original_currency: str = ""

    @staticmethod
    def from_dict(data: dict) -> "Term":
        return Term(
            gate_name=str(data.get("gate_name") or data.get("gate") or ""),
            url=str(data.get("url") or data.get("terms_url") or ""),
            price=_float_or_zero(data.get("price")),
            original_currency=str(data.get("original_currency") or data.get("currency") or ""),
        )


@dataclass
class Offer:
    """One priced itinerary (outbound ± return) with its selling terms.

    price es el total para todos los pasajeros, en la moneda de la búsqueda.
    terms está ordenado por precio: terms[0] es el más barato y coincide
    con price.
    """

    price: float
    segments: list[Segment] = field(default_factory=list)
    terms: list[Term] = field(default_factory=list)
    baggage: list[Baggage] = field(default_factory=list)
    currency: str = ""

    @staticmethod
    def from_dict(data: dict, currency: str = "") -> "Offer":
        """Build an Offer from a normalized backend proposal.

        Campos faltantes caen en valores neutros (0 escalas, sin equipaje)
        en vez de fallar.
        """
        segments = [Segment.from_dict(s) for s in _dicts(data.get("segments"))]

        raw_terms = data.get("all_terms") or data.get("terms") or []
        if isinstance(raw_terms, dict):
            raw_terms = list(raw_terms.values())
        # Términos sin precio no se pueden reservar
        terms = sorted(
            (t for t in (Term.from_dict(item) for item in _dicts(raw_terms)) if t.price > 0),
            key=lambda t: t.price,
        )

        # Oferta sin lista de términos: el gate principal viene en el nivel raíz
        if not terms and data.get("terms_url"):
            terms = [
                Term(
                    gate_name=str(data.get("gate_name") or ""),
                    url=str(data["terms_url"]),
                    price=_float_or_zero(data.get("price")),
                    original_currency=str(data.get("currency") or currency),
                )
            ]

        price = terms[0].price if terms else _float_or_zero(data.get("price"))
        baggage = [Baggage.from_dict(b) for b in _dicts(data.get("baggage"))]

        return Offer(
            price=price,
            segments=segments,
            terms=terms,
            baggage=baggage,
            currency=str(data.get("currency") or currency),
        )

    @property
    def outbound(self) -> Segment | None:
        return self.segments[0] if self.segments else None

    @property
    def inbound(self) -> Segment | None:
        """Return segment, if the offer is a round trip."""
        return self.segments[1] if len(self.segments) > 1 else None

    @property
    def carriers(self) -> frozenset[str]:
        return frozenset(code for seg in self.segments for code in seg.airlines)

    @property
    def max_stops(self) -> int:
        return max((seg.stops for seg in self.segments), default=0)

    @property
    def duration(self) -> int | None:
        """Outbound total duration in minutes."""
        return self.outbound.total_duration if self.outbound else None

    @property
    def terms_url(self) -> str:
        return self.terms[0].url if self.terms else ""

    @property
    def gate_name(self) -> str:
        return self.terms[0].gate_name if self.terms else ""


@dataclass
class SubmissionResponse:
    """Result of submitting a search to the backend."""

    search_id: str
    currency_rates: dict[str, float] = field(default_factory=dict)


@dataclass
class ResultsPage:
    """One polling response: the backend's full current proposal set."""

    offers: list[Offer] = field(default_factory=list)
    total: int = 0
    completed: bool = False
    currency_rates: dict[str, float] = field(default_factory=dict)


@dataclass
class BookingLink:
    """Redirect target returned by the booking-click endpoint.

    Si method es POST hay que armar un formulario con params y enviarlo
    en una pestaña nueva; si es GET alcanza con abrir la url.
    """

    url: str
    method: str = "GET"
    params: dict[str, str] = field(default_factory=dict)
    gate_id: str = ""

    @property
    def requires_form(self) -> bool:
        return self.method.upper() == "POST" and bool(self.params)

    def form_fields(self) -> list[tuple[str, str]]:
        """Hidden inputs for the POST redirect form, in insertion order."""
        return [(str(k), str(v)) for k, v in self.params.items()]


@dataclass(frozen=True)
class Combination:
    """One (outbound date, return date) pair of a multi-date search."""

    outbound_date: str
    return_date: str

    @property
    def label(self) -> str:
        return f"{self.outbound_date} → {self.return_date}"


@dataclass
class DestinationFare:
    """A destination returned by the discovery backend for one combination."""

    name: str
    country: str
    primary_airport: str = ""
    price: float = 0.0
    stops: int = 0
    duration_minutes: int = 0

    @staticmethod
    def from_dict(data: dict) -> "DestinationFare":
        flight = data.get("flight")
        if not isinstance(flight, dict):
            flight = {}
        primary_airport = str(data.get("primary_airport") or "")
        return DestinationFare(
            name=str(data.get("name") or ""),
            country=str(data.get("country") or ""),
            primary_airport=str(flight.get("airport_code") or primary_airport),
            price=_float_or_zero(flight.get("price")),
            stops=_int_or_none(flight.get("stops")) or 0,
            duration_minutes=_int_or_none(flight.get("flight_duration_minutes")) or 0,
        )

    @property
    def identity_key(self) -> str:
        """Dedup key: normalized name + normalized country."""
        return f"{normalize_text(self.name)}|{normalize_text(self.country)}"

    def summary(self) -> str:
        stops_text = "directo" if self.stops == 0 else f"{self.stops} escala(s)"
        hours, minutes = divmod(self.duration_minutes, 60)
        return f"{self.primary_airport} · {stops_text} · {hours}h {minutes:02d}m"


@dataclass
class DestinationOption:
    """A price observed for a destination under one combination."""

    combination: Combination
    price: float
    segment_summary: str


@dataclass
class AggregatedDestination:
    """Deduplicated destination across all combinations.

    best siempre tiene el precio mínimo observado; options acumula
    todas las combinaciones en las que apareció el destino.
    """

    key: str
    best: DestinationFare
    combination: Combination
    match_count: int = 1
    options: list[DestinationOption] = field(default_factory=list)

    @property
    def price(self) -> float:
        return self.best.price

    @property
    def name(self) -> str:
        return self.best.name

    @property
    def country(self) -> str:
        return self.best.country


@dataclass
class AppSettings:
    """Global engine settings loaded from config.

    Cadencia de polling, debounce de render, tamaño de batch de
    combinaciones y datos del backend.
    """

    api_base_url: str = "https://www.benetrip.com.br"
    http_timeout_seconds: float = 45.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/145.0.0.0 Safari/537.36"
    )
    default_currency: str = "BRL"
    # Polling: las primeras fast_poll_count consultas van cada 2s, después cada 1.5s
    max_polls: int = 40
    fast_poll_count: int = 5
    fast_poll_interval_seconds: float = 2.0
    poll_interval_seconds: float = 1.5
    poll_retry_seconds: float = 2.0
    # Render progresivo
    first_render_threshold: int = 5
    render_debounce_seconds: float = 0.5
    # Búsqueda multi-fecha: requests simultáneos por batch
    combination_batch_size: int = 3
    results_per_page: int = 10
