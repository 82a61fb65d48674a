"""Deep-link encoder for the external flight search page.

Arma los parámetros tfs/tfu de la URL de búsqueda de Google Flights.
Son mensajes protobuf codificados a mano (varint + tag) y pasados a
base64url sin padding. El esquema es externo y fijo: los números de
campo y los wire types de abajo no se pueden reordenar ni cambiar.

Solo codifica; no hace falta decodificar.
"""

import base64
import logging
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

FLIGHT_SEARCH_URL = "https://www.google.com/travel/flights/search"

# Wire types
WIRE_VARINT = 0
WIRE_LENGTH_DELIMITED = 2

# Mensaje "airport"
AIRPORT_KIND_FIELD = 1
AIRPORT_KIND = 1
AIRPORT_CODE_FIELD = 2

# Mensaje "flight leg"
LEG_DATE_FIELD = 2
LEG_ORIGIN_FIELD = 13
LEG_DESTINATION_FIELD = 14

# Mensaje de búsqueda (tfs)
SEARCH_MODE_FIELD = 1
SEARCH_MODE = 28
SEARCH_COUNT_FIELD = 2
SEARCH_COUNT = 2
SEARCH_LEG_FIELD = 3  # Campo repetido: ida y vuelta
SEARCH_TRAILER_FIELD = 14
SEARCH_TRAILER = 1

# Mensaje de pasajeros (tfu)
PASSENGERS_FIELD = 2
ADULTS_FIELD = 1
CHILDREN_FIELD = 2
INFANTS_FIELD = 3

# Tablas estáticas por moneda
GOOGLE_CURRENCY: dict[str, str] = {"BRL": "BRL", "USD": "USD", "EUR": "EUR"}
GOOGLE_LOCALE: dict[str, str] = {"BRL": "pt-BR", "USD": "en", "EUR": "en"}
GOOGLE_REGION: dict[str, str] = {"BRL": "br", "USD": "us", "EUR": "de"}
DEFAULT_CURRENCY = "BRL"


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a varint.

    7 bits de datos por byte, el bit alto marca que sigue otro byte.
    """
    if value < 0:
        raise ValueError(f"varint no admite negativos: {value}")
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_tag(field_number: int, wire_type: int) -> bytes:
    return encode_varint((field_number << 3) | wire_type)


def varint_field(field_number: int, value: int) -> bytes:
    return encode_tag(field_number, WIRE_VARINT) + encode_varint(value)


def bytes_field(field_number: int, payload: bytes) -> bytes:
    """Length-delimited field (string, bytes or nested message)."""
    return encode_tag(field_number, WIRE_LENGTH_DELIMITED) + encode_varint(len(payload)) + payload


def string_field(field_number: int, text: str) -> bytes:
    return bytes_field(field_number, text.encode("utf-8"))


def to_base64url(payload: bytes) -> str:
    """Base64url without '=' padding."""
    return base64.urlsafe_b64encode(payload).rstrip(b"=").decode("ascii")


def build_airport(code: str) -> bytes:
    return varint_field(AIRPORT_KIND_FIELD, AIRPORT_KIND) + string_field(AIRPORT_CODE_FIELD, code)


def build_flight_leg(flight_date: str, origin: str, destination: str) -> bytes:
    return (
        string_field(LEG_DATE_FIELD, flight_date)
        + bytes_field(LEG_ORIGIN_FIELD, build_airport(origin))
        + bytes_field(LEG_DESTINATION_FIELD, build_airport(destination))
    )


def build_search_payload(
    origin: str,
    destination: str,
    outbound_date: str,
    return_date: str | None,
) -> bytes:
    """Top-level search record (tfs).

    Sin fecha de vuelta se omite el segundo leg; el resto del mensaje
    no cambia.
    """
    payload = (
        varint_field(SEARCH_MODE_FIELD, SEARCH_MODE)
        + varint_field(SEARCH_COUNT_FIELD, SEARCH_COUNT)
        + bytes_field(SEARCH_LEG_FIELD, build_flight_leg(outbound_date, origin, destination))
    )
    if return_date:
        payload += bytes_field(SEARCH_LEG_FIELD, build_flight_leg(return_date, destination, origin))
    return payload + varint_field(SEARCH_TRAILER_FIELD, SEARCH_TRAILER)


def build_passengers_payload(adults: int = 1, children: int = 0, infants: int = 0) -> bytes:
    """Passenger record (tfu), wrapped in field 2."""
    inner = (
        varint_field(ADULTS_FIELD, adults)
        + varint_field(CHILDREN_FIELD, children)
        + varint_field(INFANTS_FIELD, infants)
    )
    return bytes_field(PASSENGERS_FIELD, inner)


def build_flight_search_url(
    origin: str,
    destination: str,
    outbound_date: str,
    return_date: str | None,
    currency: str = DEFAULT_CURRENCY,
    adults: int = 1,
    children: int = 0,
    infants: int = 0,
) -> str:
    """Build the external flight search deep link.

    Args:
        origin: IATA de origen (ej. "GRU").
        destination: IATA de destino (ej. "LIS").
        outbound_date: Fecha de ida YYYY-MM-DD.
        return_date: Fecha de vuelta YYYY-MM-DD, o None para solo ida.
        currency: Moneda; define curr/hl/gl vía las tablas estáticas.
        adults, children, infants: Pasajeros para el parámetro tfu.

    Returns:
        URL completa con tfs, tfu, curr, hl y gl.
    """
    currency = (currency or DEFAULT_CURRENCY).upper()
    tfs = to_base64url(build_search_payload(origin, destination, outbound_date, return_date))
    tfu = to_base64url(build_passengers_payload(adults, children, infants))

    params = {
        "tfs": tfs,
        "tfu": tfu,
        "curr": GOOGLE_CURRENCY.get(currency, DEFAULT_CURRENCY),
        "hl": GOOGLE_LOCALE.get(currency, GOOGLE_LOCALE[DEFAULT_CURRENCY]),
        "gl": GOOGLE_REGION.get(currency, GOOGLE_REGION[DEFAULT_CURRENCY]),
    }
    url = f"{FLIGHT_SEARCH_URL}?{urlencode(params)}"

    logger.debug(
        "Deep link %s→%s %s/%s (%s): %s",
        origin, destination, outbound_date, return_date or "-", params["curr"], url,
    )
    return url
