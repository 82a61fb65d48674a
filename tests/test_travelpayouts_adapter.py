"""Tests for the Travelpayouts backend adapter.

Tests del adapter HTTP: parseo de respuestas, filtrado de propuestas sin
precio, parámetros enviados y propagación de errores HTTP.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from benetrip.adapters.travelpayouts import TravelpayoutsBackend
from benetrip.models import AppSettings, Combination, SearchQuery

MOCK_RESULTS_RESPONSE = {
    "proposals": [
        {
            "segments": [{"flights": [{"airline": "TP", "departure_airport": "GRU", "arrival_airport": "LIS"}]}],
            "all_terms": [{"gate_name": "Agencia A", "url": "t-a", "price": 2900}],
        },
        {
            "segments": [{"flights": [{"airline": "LA"}]}],
            "all_terms": [{"gate_name": "Sin precio", "url": "t-x", "price": 0}],
        },
        "basura",
    ],
    "total": 3,
    "completed": True,
    "currency_rates": {"USD": "5.2", "EUR": None},
}


@pytest.fixture
def backend():
    return TravelpayoutsBackend(AppSettings(api_base_url="https://api.example.com/"))


def _mock_client(mock_client_cls, payload=None, status_error=None):
    mock_response = MagicMock()
    mock_response.json.return_value = payload or {}
    if status_error is not None:
        mock_response.status_code = status_error
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=mock_response,
        )
    else:
        mock_response.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    mock_client.post.return_value = mock_response
    mock_client.get.return_value = mock_response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


@pytest.mark.asyncio
async def test_submit_search_returns_search_id(backend):
    query = SearchQuery(origin="GRU", destination="LIS", departure_date="2026-05-10", return_date="2026-05-20")

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, {"search_id": "uuid-1", "currency_rates": {"USD": 5.0}})
        submission = await backend.submit_search(query)

    assert submission.search_id == "uuid-1"
    assert submission.currency_rates == {"usd": 5.0}
    url = client.post.call_args.args[0]
    assert url == "https://api.example.com/api/flight-search"
    body = client.post.call_args.kwargs["json"]
    assert body["origin"] == "GRU"
    assert body["return_date"] == "2026-05-20"
    assert body["trip_class"] == "Y"


@pytest.mark.asyncio
async def test_submit_without_search_id_is_invalid(backend):
    query = SearchQuery(origin="GRU", destination="LIS", departure_date="2026-05-10")

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, {"error": "nope"})
        with pytest.raises(ValueError):
            await backend.submit_search(query)


@pytest.mark.asyncio
async def test_submit_propagates_http_errors(backend):
    query = SearchQuery(origin="GRU", destination="LIS", departure_date="2026-05-10")

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, status_error=500)
        with pytest.raises(httpx.HTTPStatusError):
            await backend.submit_search(query)


@pytest.mark.asyncio
async def test_fetch_results_parses_and_drops_unpriced(backend):
    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, MOCK_RESULTS_RESPONSE)
        page = await backend.fetch_results("uuid-1", "BRL", {"usd": 5.0})

    assert len(page.offers) == 1
    assert page.offers[0].price == 2900
    assert page.offers[0].currency == "BRL"
    assert page.completed is True
    assert page.total == 3
    # Tasas inválidas se ignoran
    assert page.currency_rates == {"usd": 5.2}

    params = client.get.call_args.kwargs["params"]
    assert params["uuid"] == "uuid-1"
    assert params["currency"] == "BRL"
    assert json.loads(params["rates"]) == {"usd": 5.0}


@pytest.mark.asyncio
async def test_fetch_results_without_rates_omits_param(backend):
    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, {"proposals": [], "completed": False})
        page = await backend.fetch_results("uuid-1", "USD")

    assert page.offers == []
    assert page.completed is False
    assert "rates" not in client.get.call_args.kwargs["params"]


@pytest.mark.asyncio
async def test_request_booking_link(backend):
    payload = {"url": "https://agency.example/book", "method": "post", "params": {"token": "x"}}

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, payload)
        link = await backend.request_booking_link("uuid-1", "t-a")

    assert link.method == "POST"
    assert link.requires_form is True
    assert client.post.call_args.kwargs["json"] == {"search_id": "uuid-1", "terms_url": "t-a"}


@pytest.mark.asyncio
async def test_booking_link_without_url_is_invalid(backend):
    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, {"method": "GET"})
        with pytest.raises(ValueError):
            await backend.request_booking_link("uuid-1", "t-a")


@pytest.mark.asyncio
async def test_search_destinations_body_and_parsing(backend):
    payload = {
        "destinations": [
            {
                "name": "Lisboa",
                "country": "Portugal",
                "flight": {"price": 2500, "airport_code": "LIS", "stops": 1, "flight_duration_minutes": 620},
            },
            {"name": "Sin vuelo", "country": "X"},
        ],
        "_meta": {"source": "cache"},
    }
    combination = Combination("2026-05-10", "2026-05-20")

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, payload)
        fares = await backend.search_destinations("GRU", combination, ["praia"], "BRL", "internacional")

    assert client.post.call_args.kwargs["json"] == {
        "origem": "GRU",
        "dataIda": "2026-05-10",
        "dataVolta": "2026-05-20",
        "preferencias": ["praia"],
        "moeda": "BRL",
        "escopoDestino": "internacional",
    }
    assert len(fares) == 2
    assert fares[0].price == 2500
    assert fares[0].primary_airport == "LIS"
    assert fares[0].summary() == "LIS · 1 escala(s) · 10h 20m"
    assert fares[1].price == 0


@pytest.mark.asyncio
async def test_fetch_results_skips_malformed_proposals(backend):
    payload = {
        "proposals": [
            {"price": 100, "segments": [None]},
            {"segments": [{"flights": [None, {"airline": "TP"}]}], "all_terms": [{"url": "t-x", "price": "abc"}]},
            {"segments": "roto", "all_terms": [None, {"gate_name": "Agencia A", "url": "t-a", "price": 2900}]},
        ],
        "total": "muchas",
        "completed": True,
    }

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, payload)
        page = await backend.fetch_results("uuid-1", "BRL")

    # El precio no numérico deja esa propuesta sin precio; las otras dos sobreviven
    assert [o.price for o in page.offers] == [100, 2900]
    assert page.offers[0].segments == []
    assert page.offers[1].terms_url == "t-a"
    assert page.total == 2


@pytest.mark.asyncio
async def test_non_object_body_is_invalid(backend):
    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        mock_client = _mock_client(mock_client_cls)
        mock_client.get.return_value.json.return_value = ["no", "es", "un", "objeto"]
        with pytest.raises(ValueError):
            await backend.fetch_results("uuid-1", "BRL")


@pytest.mark.asyncio
async def test_search_destinations_tolerates_bad_flight(backend):
    payload = {
        "destinations": [
            {"name": "Lisboa", "country": "Portugal", "flight": None},
            {"name": "Roma", "country": "Itália", "flight": {"price": "n/d"}},
            None,
        ],
    }

    with patch("benetrip.adapters.travelpayouts.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, payload)
        fares = await backend.search_destinations(
            "GRU", Combination("2026-05-10", "2026-05-20"), [], "BRL", "tanto_faz",
        )

    assert [(f.name, f.price) for f in fares] == [("Lisboa", 0.0), ("Roma", 0.0)]
