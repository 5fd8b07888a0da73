"""
sim/scheduler.py
================
Tick-driven timers replacing "do X, wait N seconds, do Y" loops.

Every :class:`Timer` is a small state machine advanced once per simulation
tick by the :class:`TickDispatcher`::

    IDLE ──start()──▶ PENDING ──elapsed──▶ FIRED
                         │
                         └──cancel()──▶ CANCELLED

A fired or cancelled timer may be started again.  Callbacks run inside
:meth:`TickDispatcher.advance`; a callback that restarts its own timer
begins counting from the next tick.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional

log = logging.getLogger("scheduler")

# Absorbs float drift from summing many small dt values.
_FIRE_TOLERANCE_S = 1e-9


class TimerState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"


class Timer:
    """One logical timer owned by a simulation component.

    Parameters
    ----------
    name : str
        Label used in debug logs (e.g. ``"light:TL1"``).
    callback : callable
        Invoked with no arguments when the timer fires.
    """

    def __init__(self, name: str, callback: Callable[[], None]) -> None:
        self.name = name
        self._callback = callback
        self.state = TimerState.IDLE
        self.remaining_s = 0.0
        self.generation = 0

    @property
    def pending(self) -> bool:
        return self.state is TimerState.PENDING

    def start(self, delay_s: float) -> None:
        """Arm the timer; an already pending countdown is replaced."""
        self.remaining_s = max(0.0, float(delay_s))
        self.state = TimerState.PENDING
        self.generation += 1

    def cancel(self) -> None:
        if self.state is TimerState.PENDING:
            self.state = TimerState.CANCELLED
            log.debug("timer %s cancelled with %.3fs left", self.name, self.remaining_s)

    def advance(self, dt: float) -> bool:
        """Consume *dt* seconds; fire when due.  Returns True if it fired."""
        if self.state is not TimerState.PENDING:
            return False
        self.remaining_s -= dt
        if self.remaining_s > _FIRE_TOLERANCE_S:
            return False
        self.remaining_s = 0.0
        self.state = TimerState.FIRED
        self._callback()
        return True


class TickDispatcher:
    """Central clock advancing every registered timer once per tick."""

    def __init__(self) -> None:
        self.now: float = 0.0
        self._timers: List[Timer] = []

    def __len__(self) -> int:
        return len(self._timers)

    def create_timer(self, name: str, callback: Callable[[], None]) -> Timer:
        """Register a new idle timer."""
        timer = Timer(name, callback)
        self._timers.append(timer)
        return timer

    def call_later(self, delay_s: float, callback: Callable[[], None],
                   name: Optional[str] = None) -> Timer:
        """Register and immediately start a one-shot timer.

        The timer drops out of the dispatcher as soon as it fires.
        """
        def fire() -> None:
            self.remove(timer)
            callback()

        timer = self.create_timer(name or getattr(callback, "__name__", "call_later"), fire)
        timer.start(delay_s)
        return timer

    def remove(self, timer: Timer) -> None:
        """Cancel *timer* and drop it from the dispatcher."""
        timer.cancel()
        try:
            self._timers.remove(timer)
        except ValueError:
            pass

    def pending_count(self) -> int:
        return sum(1 for t in self._timers if t.pending)

    def advance(self, dt: float) -> None:
        """Move the clock forward by *dt* and fire every due timer.

        Timers created or restarted by a callback during this call are not
        advanced until the next tick.
        """
        self.now += dt
        snapshot = [(t, t.generation) for t in self._timers if t.pending]
        for timer, generation in snapshot:
            if timer.pending and timer.generation == generation:
                timer.advance(dt)
