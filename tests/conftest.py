"""Shared fixtures and fakes for the engine tests.

Fakes de backend y de scheduler para correr la sesión de polling y el
orquestador sin red ni tiempo real.
"""

import pytest

from benetrip.adapters.base import BaseBackend
from benetrip.models import (
    AppSettings,
    BookingLink,
    Flight,
    Offer,
    ResultsPage,
    SearchQuery,
    Segment,
    SubmissionResponse,
    Term,
)
from benetrip.scheduler import Scheduler


class FakeTimer:
    def __init__(self, due: float, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Manual clock: timers only fire when the test calls advance()."""

    def __init__(self) -> None:
        self._now = 0.0
        self.timers: list[FakeTimer] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback) -> FakeTimer:
        timer = FakeTimer(self._now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            timer.cancelled = True
            self._now = timer.due
            timer.callback()
        self._now = target


class FakeBackend(BaseBackend):
    """Scripted backend.

    pages es la secuencia de respuestas de fetch_results; cada elemento
    puede ser un ResultsPage o una excepción a levantar. Cuando se acaba
    la secuencia se repite el último elemento.
    """

    def __init__(self, settings, pages=None, submission=None, on_fetch=None) -> None:
        super().__init__(settings)
        self.pages = list(pages or [ResultsPage(completed=True)])
        self.submission = submission or SubmissionResponse(search_id="abc123")
        self.on_fetch = on_fetch
        self.submitted: list[SearchQuery] = []
        self.fetch_calls: list[tuple[str, str, dict]] = []
        self.clicks: list[tuple[str, str]] = []
        self.link = BookingLink(url="https://agency.example/book")

    @property
    def source_name(self) -> str:
        return "fake"

    async def submit_search(self, query):
        self.submitted.append(query)
        if isinstance(self.submission, Exception):
            raise self.submission
        return self.submission

    async def fetch_results(self, search_id, currency, rates=None):
        self.fetch_calls.append((search_id, currency, dict(rates or {})))
        index = min(len(self.fetch_calls), len(self.pages)) - 1
        if self.on_fetch is not None:
            self.on_fetch(len(self.fetch_calls))
        page = self.pages[index]
        if isinstance(page, Exception):
            raise page
        return page

    async def request_booking_link(self, search_id, terms_url):
        self.clicks.append((search_id, terms_url))
        if isinstance(self.link, Exception):
            raise self.link
        return self.link

    async def search_destinations(self, origin, combination, preferences, currency, scope):
        return []


class RecordedSleep:
    """Replacement for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_flight(
    airline="LA",
    departure="GRU",
    arrival="LIS",
    departure_time="08:00",
    arrival_time="20:00",
    departure_date="2026-05-10",
    arrival_date="2026-05-10",
) -> Flight:
    return Flight(
        airline=airline,
        airline_name=airline,
        departure_airport=departure,
        arrival_airport=arrival,
        departure_date=departure_date,
        departure_time=departure_time,
        arrival_date=arrival_date,
        arrival_time=arrival_time,
    )


def make_offer(
    price: float,
    duration: int | None = 600,
    stops: int = 0,
    airline: str = "LA",
    origin: str = "GRU",
    destination: str = "LIS",
    departure_time: str = "08:00",
    arrival_time: str = "20:00",
    inbound: Segment | None = None,
) -> Offer:
    """Build an offer whose outbound has stops + 1 legs."""
    legs = stops + 1
    stations = [origin] + [f"X{chr(65 + i)}{chr(65 + i)}" for i in range(stops)] + [destination]
    flights = [
        make_flight(
            airline=airline,
            departure=stations[i],
            arrival=stations[i + 1],
            departure_time=departure_time if i == 0 else "12:00",
            arrival_time=arrival_time if i == legs - 1 else "11:00",
        )
        for i in range(legs)
    ]
    segments = [Segment(flights=flights, stops=stops, total_duration=duration)]
    if inbound is not None:
        segments.append(inbound)
    return Offer(
        price=price,
        segments=segments,
        terms=[Term(gate_name="Agency", url=f"terms-{price}", price=price)],
        currency="BRL",
    )


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def sleep():
    return RecordedSleep()


@pytest.fixture
def query():
    return SearchQuery(
        origin="GRU",
        destination="LIS",
        departure_date="2026-05-10",
        return_date="2026-05-20",
    )
