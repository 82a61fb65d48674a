"""Cancelable timers for the polling/render state machine.

Cada tipo de timer tiene un único "slot": programar uno nuevo cancela
primero el anterior. Así una búsqueda nueva nunca hereda callbacks
viejos que muten el estado de la sesión actual.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Source of time and delayed callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback after delay seconds. Returns a cancelable handle."""
        ...


class LoopScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class TimerSlot:
    """Single-slot ownership of one pending timer."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Replace whatever is pending with a new timer."""
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, fire)

    def cancel(self) -> None:
        """Cancel the pending timer. Safe to call repeatedly."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Debouncer:
    """Collapse bursts of triggers into one call per window.

    Cada trigger reprograma la llamada window segundos hacia adelante;
    los triggers dentro de la ventana reemplazan al pendiente (no se
    acumulan).
    """

    def __init__(self, scheduler: Scheduler, window: float, callback: Callable[[], None]) -> None:
        self.window = window
        self._callback = callback
        self._slot = TimerSlot(scheduler)

    @property
    def pending(self) -> bool:
        return self._slot.pending

    def trigger(self) -> None:
        self._slot.schedule(self.window, self._callback)

    def cancel(self) -> None:
        self._slot.cancel()
