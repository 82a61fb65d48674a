"""Tests for the polling search session.

Corre la máquina de estados completa contra un backend falso: reemplazo
de la lista en cada poll, merge de tasas, cadencia, reintentos,
presupuesto de polls, render progresivo y descarte de respuestas viejas.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from conftest import FakeBackend, make_offer

from benetrip.adapters.travelpayouts import TravelpayoutsBackend
from benetrip.errors import SubmissionError
from benetrip.models import AppSettings, ResultsPage, SubmissionResponse
from benetrip.session import SearchSession, SearchStatus


def _page(count: int, completed: bool = False, rates=None, start: int = 100) -> ResultsPage:
    offers = [make_offer(start + i) for i in range(count)]
    return ResultsPage(offers=offers, total=count, completed=completed, currency_rates=rates or {})


def _session(backend, settings, scheduler, sleep, renders=None):
    on_render = renders.append if renders is not None else None
    return SearchSession(backend, settings, on_render=on_render, scheduler=scheduler, sleep=sleep)


@pytest.mark.asyncio
async def test_each_poll_replaces_offer_list(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, pages=[_page(3), _page(2, completed=True, start=500)])
    session = _session(backend, settings, scheduler, sleep)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.COMPLETED
    assert [o.price for o in outcome.offers] == [500, 501]
    assert outcome.polls == 2
    assert outcome.search_id == "abc123"
    assert outcome.ok is True
    assert session.progress == 100.0


@pytest.mark.asyncio
async def test_currency_rates_are_merged(settings, scheduler, sleep, query):
    backend = FakeBackend(
        settings,
        submission=SubmissionResponse(search_id="abc123", currency_rates={"usd": 5.0}),
        pages=[_page(1, rates={"usd": 5.1, "eur": 6.0}), _page(1, completed=True)],
    )
    session = _session(backend, settings, scheduler, sleep)

    await session.run(query)

    # El primer poll manda las tasas iniciales; el segundo, las mergeadas
    assert backend.fetch_calls[0] == ("abc123", "BRL", {"usd": 5.0})
    assert backend.fetch_calls[1][2] == {"usd": 5.1, "eur": 6.0}
    assert session.currency_rates == {"usd": 5.1, "eur": 6.0}


@pytest.mark.asyncio
async def test_poll_budget_exhaustion_returns_partial_results(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, pages=[_page(2)])
    session = _session(backend, settings, scheduler, sleep)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.TIMEOUT_EXHAUSTED
    assert outcome.ok is True
    assert outcome.polls == 40
    assert len(backend.fetch_calls) == 40
    assert len(outcome.offers) == 2


@pytest.mark.asyncio
async def test_poll_cadence(settings, scheduler, sleep, query):
    settings.max_polls = 8
    backend = FakeBackend(settings, pages=[_page(1)])
    session = _session(backend, settings, scheduler, sleep)

    await session.run(query)

    assert sleep.delays == [2.0] * 4 + [1.5] * 4


@pytest.mark.asyncio
async def test_transient_poll_error_is_retried(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, pages=[httpx.ConnectError("boom"), _page(6, completed=True)])
    session = _session(backend, settings, scheduler, sleep)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.COMPLETED
    assert sleep.delays == [2.0]
    # El poll fallido también cuenta contra el presupuesto
    assert outcome.polls == 2


@pytest.mark.asyncio
async def test_transient_errors_count_towards_budget(settings, scheduler, sleep, query):
    settings.max_polls = 3
    backend = FakeBackend(settings, pages=[httpx.ReadTimeout("slow")])
    session = _session(backend, settings, scheduler, sleep)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.EMPTY
    assert outcome.polls == 3
    assert sleep.delays == [2.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_first_render_at_threshold_then_debounced(settings, scheduler, sleep, query):
    renders = []
    backend = FakeBackend(
        settings,
        pages=[_page(3), _page(5), _page(6), _page(7, completed=True)],
    )
    session = _session(backend, settings, scheduler, sleep, renders)

    outcome = await session.run(query)

    # 3 ofertas: todavía no; 5: render inmediato; 6: debounce pendiente
    # (cancelado al terminar); 7: render final
    assert [len(r) for r in renders] == [5, 7]
    assert outcome.status is SearchStatus.COMPLETED
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_debounced_render_fires_after_window(settings, scheduler, sleep, query):
    renders = []

    def advance_clock(call_number):
        # Entre polls pasa más de una ventana de debounce
        scheduler.advance(0.6)

    backend = FakeBackend(
        settings,
        pages=[_page(5), _page(6), _page(6, completed=True)],
        on_fetch=advance_clock,
    )
    session = _session(backend, settings, scheduler, sleep, renders)

    await session.run(query)

    assert [len(r) for r in renders] == [5, 6, 6]


@pytest.mark.asyncio
async def test_submission_rejected_fails_without_polling(settings, scheduler, sleep, query):
    request = httpx.Request("POST", "https://www.benetrip.com.br/api/flight-search")
    response = httpx.Response(502, request=request)
    backend = FakeBackend(
        settings,
        submission=httpx.HTTPStatusError("Bad Gateway", request=request, response=response),
    )
    session = _session(backend, settings, scheduler, sleep)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.FAILED
    assert isinstance(outcome.error, SubmissionError)
    assert outcome.error.status_code == 502
    assert backend.fetch_calls == []


@pytest.mark.asyncio
async def test_start_raises_submission_error(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, submission=httpx.ConnectError("offline"))
    session = _session(backend, settings, scheduler, sleep)

    with pytest.raises(SubmissionError):
        await session.start(query)


@pytest.mark.asyncio
async def test_completed_without_offers_is_empty(settings, scheduler, sleep, query):
    renders = []
    backend = FakeBackend(settings, pages=[ResultsPage(completed=True)])
    session = _session(backend, settings, scheduler, sleep, renders)

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.EMPTY
    assert outcome.ok is False
    assert renders == []


@pytest.mark.asyncio
async def test_poll_with_stale_handle_is_ignored(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, pages=[_page(5, completed=True)])
    session = _session(backend, settings, scheduler, sleep)

    handle = await session.start(query)
    session.reset()

    assert await session.poll(handle) is None
    assert backend.fetch_calls == []
    assert session.offers == []


@pytest.mark.asyncio
async def test_late_response_is_discarded(settings, scheduler, sleep, query):
    renders = []
    backend = FakeBackend(settings, pages=[_page(5, completed=True)])
    session = _session(backend, settings, scheduler, sleep, renders)
    # Una búsqueda nueva arranca mientras el poll está en vuelo
    backend.on_fetch = lambda _: session.reset()

    handle = await session.start(query)
    result = await session.poll(handle)

    assert result is None
    assert session.offers == []
    assert renders == []


@pytest.mark.asyncio
async def test_reset_mid_run_cancels(settings, scheduler, sleep, query):
    backend = FakeBackend(settings, pages=[_page(2)])
    session = _session(backend, settings, scheduler, sleep)
    backend.on_fetch = lambda n: session.reset() if n == 3 else None

    outcome = await session.run(query)

    assert outcome.status is SearchStatus.CANCELLED
    assert session.offers == []
    assert session.poll_count == 0


@pytest.mark.asyncio
async def test_new_search_cancels_previous_task(settings, scheduler, query):
    backend = FakeBackend(settings, pages=[_page(5, completed=True)])

    async def yielding_sleep(delay):
        await asyncio.sleep(0)

    session = SearchSession(backend, settings, scheduler=scheduler, sleep=yielding_sleep)

    first = session.search(query)
    second = session.search(query)
    outcome = await second

    assert first.cancelled()
    assert outcome.status is SearchStatus.COMPLETED
    assert len(backend.submitted) == 1


def test_progress_and_delay(settings, scheduler, sleep):
    session = SearchSession(FakeBackend(settings), settings, scheduler=scheduler, sleep=sleep)
    assert session.progress == 20.0
    assert session.next_poll_delay() == 2.0

    session.poll_count = 5
    assert session.next_poll_delay() == 1.5

    session.poll_count = 40
    assert session.progress == 90.0


@pytest.mark.asyncio
async def test_malformed_proposal_does_not_escape_run(scheduler, sleep, query):
    """Una propuesta con segmentos nulos termina en un outcome tipado, sin excepción."""
    settings = AppSettings(api_base_url="https://api.example.com")
    backend = TravelpayoutsBackend(settings)
    session = _session(backend, settings, scheduler, sleep)

    responses = {
        "post": {"search_id": "uuid-1"},
        "get": {"proposals": [{"price": 100, "segments": [None]}], "completed": True},
    }

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        post_response, get_response = MagicMock(), MagicMock()
        post_response.json.return_value = responses["post"]
        get_response.json.return_value = responses["get"]
        mock_client.post.return_value = post_response
        mock_client.get.return_value = get_response
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_client

        outcome = await session.run(query)

    assert outcome.status is SearchStatus.COMPLETED
    assert [o.price for o in outcome.offers] == [100]
