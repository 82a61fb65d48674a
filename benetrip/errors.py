"""Error taxonomy for the discovery engine.

Errores "duros" (SubmissionError, BookingLinkError) llegan a la capa de
presentación. PollTransientError se recupera localmente con reintento y
nunca sale de la sesión. El agotamiento del presupuesto de polling y el
resultado vacío no son excepciones: son estados de SearchStatus.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class SubmissionError(EngineError):
    """The backend rejected or failed the search submission. No retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PollTransientError(EngineError):
    """A polling request failed at the network level. Retried after a delay."""


class BookingLinkError(EngineError):
    """The booking click-through failed. The offer stays bookable via retry."""


class SearchCancelled(EngineError):
    """The session was superseded by a newer search while waiting on the backend."""


class DiscoveryError(EngineError):
    """Every combination of a multi-date discovery search failed."""
