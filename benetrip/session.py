"""Single-query search session: submit, poll, terminate.

Una SearchSession es dueña de todo el estado de una búsqueda: search_id,
tabla de tasas, lista de ofertas, contador de polls y timers. No hay
estado global, así que varias sesiones (o tests) corren aisladas.

Flujo:
1. start(query): envía la búsqueda y obtiene search_id + tasas iniciales
2. poll(handle): trae el set completo de propuestas y reemplaza la lista
3. run(query): repite poll con la cadencia configurada hasta completed
   o hasta agotar el presupuesto de polls (éxito con resultados parciales)

Una búsqueda nueva cancela el poll pendiente y el render pendiente antes
de resetear el estado. Respuestas que llegan de una búsqueda abandonada
se descartan sin mezclarse.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

import httpx

from benetrip.adapters.base import BaseBackend
from benetrip.errors import EngineError, PollTransientError, SearchCancelled, SubmissionError
from benetrip.models import AppSettings, Offer, ResultsPage, SearchQuery
from benetrip.scheduler import Debouncer, LoopScheduler, Scheduler

logger = logging.getLogger(__name__)

RenderCallback = Callable[[list[Offer]], None]
SleepFunc = Callable[[float], Awaitable[None]]


class SearchStatus(str, Enum):
    COMPLETED = "completed"  # El backend marcó completed
    TIMEOUT_EXHAUSTED = "timeout_exhausted"  # Se agotaron los polls, resultados parciales
    EMPTY = "empty"  # Terminó sin ninguna oferta
    FAILED = "failed"  # Error duro (ej. envío rechazado)
    CANCELLED = "cancelled"  # Reemplazada por una búsqueda nueva


@dataclass(frozen=True)
class SessionHandle:
    """Opaque handle for one submitted search."""

    search_id: str
    generation: int


@dataclass
class PollResult:
    offers: list[Offer]
    completed: bool
    total: int = 0


@dataclass
class SearchOutcome:
    """Terminal result of SearchSession.run, handed to the presentation layer."""

    status: SearchStatus
    offers: list[Offer] = field(default_factory=list)
    search_id: str | None = None
    polls: int = 0
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SearchStatus.COMPLETED, SearchStatus.TIMEOUT_EXHAUSTED)


class SearchSession:
    """Owns the lifecycle of one backend flight search."""

    def __init__(
        self,
        backend: BaseBackend,
        settings: AppSettings,
        on_render: RenderCallback | None = None,
        scheduler: Scheduler | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the session.

        Args:
            backend: Backend contra el que se busca.
            settings: Cadencia de polling, umbral de primer render, debounce.
            on_render: Callback que recibe la lista de ofertas para mostrar.
            scheduler: Fuente de timers para el debounce (por defecto el event loop).
            sleep: Espera entre polls (inyectable para tests).
        """
        self.backend = backend
        self.settings = settings
        self._on_render = on_render
        self._sleep = sleep
        self._render = Debouncer(
            scheduler or LoopScheduler(),
            settings.render_debounce_seconds,
            self._emit_render,
        )

        self._generation = 0
        self._task: asyncio.Task | None = None

        self.query: SearchQuery | None = None
        self.search_id: str | None = None
        self.currency_rates: dict[str, float] = {}
        self.offers: list[Offer] = []
        self.poll_count = 0
        self.completed = False
        self.results_shown = False

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Cancel pending timers and discard all search state.

        Idempotente. Incrementa la generación para que cualquier respuesta
        en vuelo de la búsqueda anterior se descarte al llegar.
        """
        self._render.cancel()
        self._cancel_task()

        self._generation += 1
        self.query = None
        self.search_id = None
        self.currency_rates = {}
        self.offers = []
        self.poll_count = 0
        self.completed = False
        self.results_shown = False

    def _cancel_task(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # run() llama a reset() desde su propia task: no se cancela a sí misma
        if task is current:
            return
        if not task.done():
            task.cancel()
        self._task = None

    def cancel(self) -> None:
        """Abandon the current search."""
        logger.info("Búsqueda %s cancelada.", self.search_id or "-")
        self.reset()

    @property
    def progress(self) -> float:
        """Progress percentage shown while polling (capped at 90 until finish)."""
        if self.completed:
            return 100.0
        return min(90.0, 20 + (self.poll_count / self.settings.max_polls) * 70)

    def next_poll_delay(self) -> float:
        """Delay before the next poll: fast cadence for the first polls."""
        if self.poll_count < self.settings.fast_poll_count:
            return self.settings.fast_poll_interval_seconds
        return self.settings.poll_interval_seconds

    def is_current(self, handle: SessionHandle) -> bool:
        return handle.generation == self._generation

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self, query: SearchQuery) -> SessionHandle:
        """Submit a search and return its handle.

        Raises:
            SubmissionError: El backend respondió no-2xx, no respondió, o no
                devolvió search_id.
            SearchCancelled: Otra búsqueda reemplazó a esta mientras se enviaba.
        """
        self.reset()
        self.query = query
        generation = self._generation

        try:
            submission = await self.backend.submit_search(query)
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                f"El backend rechazó la búsqueda (HTTP {e.response.status_code})",
                status_code=e.response.status_code,
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise SubmissionError(f"No se pudo iniciar la búsqueda: {e}") from e

        if generation != self._generation:
            raise SearchCancelled("La búsqueda fue reemplazada antes de obtener search_id.")

        self.search_id = submission.search_id
        self.currency_rates = dict(submission.currency_rates)
        logger.info("✅ search_id: %s", self.search_id)
        return SessionHandle(search_id=submission.search_id, generation=generation)

    async def poll(self, handle: SessionHandle) -> PollResult | None:
        """Run one polling request and merge its result.

        Devuelve None si la respuesta pertenece a una búsqueda abandonada
        (se descarta sin tocar el estado).

        Raises:
            PollTransientError: Falla de red o HTTP en el request. El contador
                de polls ya fue incrementado.
        """
        if not self.is_current(handle):
            return None

        self.poll_count += 1
        try:
            page = await self.backend.fetch_results(
                handle.search_id,
                self.query.currency if self.query else "",
                self.currency_rates,
            )
        except (httpx.HTTPError, ValueError) as e:
            if not self.is_current(handle):
                return None
            raise PollTransientError(f"Poll #{self.poll_count} falló: {e}") from e

        if not self.is_current(handle):
            logger.debug("Respuesta tardía de %s descartada.", handle.search_id)
            return None

        self._merge(page)
        if page.completed:
            self.completed = True

        return PollResult(offers=list(self.offers), completed=page.completed, total=page.total)

    async def run(self, query: SearchQuery) -> SearchOutcome:
        """Drive a whole search until completion or poll budget exhaustion.

        Los errores transitorios de polling se reintentan acá y nunca salen.
        Los errores duros vuelven como SearchOutcome con status FAILED.
        """
        try:
            handle = await self.start(query)
        except SearchCancelled:
            return SearchOutcome(status=SearchStatus.CANCELLED)
        except SubmissionError as e:
            logger.error("❌ Error al enviar la búsqueda: %s", e)
            return SearchOutcome(status=SearchStatus.FAILED, error=e)

        while not self.completed:
            if self.poll_count >= self.settings.max_polls:
                logger.info(
                    "Presupuesto de polls agotado (%d) para %s; se muestran %d ofertas parciales.",
                    self.poll_count, handle.search_id, len(self.offers),
                )
                break

            try:
                result = await self.poll(handle)
            except PollTransientError as e:
                logger.warning("%s. Reintentando en %.1fs.", e, self.settings.poll_retry_seconds)
                await self._sleep(self.settings.poll_retry_seconds)
                continue

            if result is None:
                return SearchOutcome(status=SearchStatus.CANCELLED, search_id=handle.search_id)

            logger.info(
                "Poll #%d: %d ofertas (%d en backend)%s",
                self.poll_count, len(result.offers), result.total,
                " (completa)" if result.completed else "",
            )
            if result.completed:
                break

            await self._sleep(self.next_poll_delay())

            if not self.is_current(handle):
                return SearchOutcome(status=SearchStatus.CANCELLED, search_id=handle.search_id)

        return self._finish(handle)

    def search(self, query: SearchQuery) -> asyncio.Task:
        """Start run(query) as a task, cancelling any search in progress."""
        self.reset()
        task = asyncio.ensure_future(self.run(query))
        self._task = task
        return task

    # ------------------------------------------------------------------
    # Merge y render
    # ------------------------------------------------------------------

    def _merge(self, page: ResultsPage) -> None:
        """Merge one polling response into the session state.

        Cada poll trae el set completo actual, así que la lista se
        reemplaza (no se acumula). Las tasas se unen; las nuevas ganan.
        """
        if page.currency_rates:
            self.currency_rates = {**self.currency_rates, **page.currency_rates}

        if page.offers:
            self.offers = list(page.offers)
            self._offers_changed()

    def _offers_changed(self) -> None:
        if not self.results_shown:
            # Render progresivo: se muestra en cuanto hay suficientes ofertas
            if len(self.offers) >= self.settings.first_render_threshold:
                self.results_shown = True
                self._emit_render()
            return
        self._render.trigger()

    def _emit_render(self) -> None:
        if self._on_render is not None:
            self._on_render(list(self.offers))

    def _finish(self, handle: SessionHandle) -> SearchOutcome:
        self._render.cancel()

        timed_out = not self.completed
        self.completed = True

        if not self.offers:
            logger.info("Búsqueda %s terminó sin ofertas.", handle.search_id)
            return SearchOutcome(
                status=SearchStatus.EMPTY,
                search_id=handle.search_id,
                polls=self.poll_count,
            )

        self.results_shown = True
        self._emit_render()

        return SearchOutcome(
            status=SearchStatus.TIMEOUT_EXHAUSTED if timed_out else SearchStatus.COMPLETED,
            offers=list(self.offers),
            search_id=handle.search_id,
            polls=self.poll_count,
        )
