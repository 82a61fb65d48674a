"""Booking click-through.

Cuando el usuario toca "Reservar", se pide al backend el link de
redirección para el término elegido. Solo se hace ante una acción del
usuario: la API prohíbe recolectar links automáticamente.
"""

import logging

import httpx

from benetrip.adapters.base import BaseBackend
from benetrip.errors import BookingLinkError
from benetrip.models import BookingLink, Offer

logger = logging.getLogger(__name__)


async def open_booking(
    backend: BaseBackend,
    search_id: str | None,
    offer: Offer,
    term_index: int = 0,
) -> BookingLink:
    """Resolve the booking redirect for one of the offer's terms.

    Raises:
        BookingLinkError: Faltan datos o el backend falló. La oferta sigue
            siendo reservable: se puede reintentar.
    """
    if not search_id or not 0 <= term_index < len(offer.terms) or not offer.terms[term_index].url:
        raise BookingLinkError("Datos no disponibles. Probá buscar de nuevo.")

    term = offer.terms[term_index]
    try:
        link = await backend.request_booking_link(search_id, term.url)
    except httpx.HTTPStatusError as e:
        logger.error("❌ Click en %s falló (HTTP %d)", term.gate_name, e.response.status_code)
        raise BookingLinkError(
            "No se pudo generar el link. Los resultados expiran en 15 minutos; "
            "probá buscar de nuevo."
        ) from e
    except (httpx.RequestError, ValueError) as e:
        logger.error("❌ Click en %s falló: %s", term.gate_name, e)
        raise BookingLinkError(f"No se pudo generar el link: {e}") from e

    logger.info("Link de reserva para %s: método %s", term.gate_name, link.method)
    return link
