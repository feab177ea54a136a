"""
Hemi-Sync - Parameter Smoother
Turns "set value to V" into a bounded linear ramp on the synthesis clock.

Rapid updates to the same parameter are coalesced: the first update after a
quiet period ramps at once, and later ones inside the debounce window replace
a single trailing ramp that starts when the window closes. Every ramp is
written onto the parameter's schedule when it is requested, so it sounds on
time whether or not the control loop is polling. Superseded targets never
produce a ramp.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from audio_graph import AudioParam
from logging_utils import log_event


@dataclass
class PendingTarget:
    target: float
    due: float
    owner: Any = None     # anything with a ``live`` flag, usually a Session


class ParameterSmoother:
    def __init__(self, clock: Callable[[], float], ramp_seconds: float = 0.06, debounce_seconds: float = 0.05):
        self._clock = clock
        self.ramp_seconds = max(0.0, float(ramp_seconds))
        self.debounce_seconds = max(0.0, float(debounce_seconds))
        self._pending: dict[AudioParam, PendingTarget] = {}
        self._last_commit: dict[AudioParam, float] = {}

    def set_clock(self, clock: Callable[[], float]) -> None:
        self._clock = clock

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_target(self, param: AudioParam) -> Optional[float]:
        pending = self._pending.get(param)
        return None if pending is None else pending.target

    def request(self, param: AudioParam, target: float, owner: Any = None) -> bool:
        """Ask for ``param`` to move to ``target``.

        Returns True when the ramp starts now, False when it was scheduled to
        start at the end of the current debounce window.
        """
        now = self._clock()
        self.pump(now)
        target = float(target)

        pending = self._pending.get(param)
        if pending is not None:
            due = pending.due
        else:
            last = self._last_commit.get(param)
            if last is None or now - last >= self.debounce_seconds:
                self._schedule(param, target, now)
                return True
            due = last + self.debounce_seconds

        # Replaces any trailing ramp already scheduled for this window
        self._schedule(param, target, due)
        self._pending[param] = PendingTarget(target, due, owner)
        return False

    def set_now(self, param: AudioParam, value: float) -> None:
        """Jump without a ramp; only for parameters nobody is hearing yet."""
        now = self._clock()
        self._pending.pop(param, None)
        param.cancel_scheduled_values(now)
        param.set_value_at_time(float(value), now)

    def pump(self, now: Optional[float] = None) -> int:
        """Retire trailing ramps whose window has closed.

        Returns how many of them belonged to a live owner.
        """
        if not self._pending:
            return 0
        now = self._clock() if now is None else now
        started = 0
        for param, pending in list(self._pending.items()):
            if pending.due > now:
                continue
            del self._pending[param]
            if pending.owner is None or getattr(pending.owner, 'live', False):
                started += 1
        return started

    def discard(self, params: Iterable[AudioParam]) -> None:
        """Forget released parameters, cancelling any trailing ramp not yet started."""
        now = self._clock()
        for param in params:
            pending = self._pending.pop(param, None)
            if pending is not None and pending.due > now:
                param.cancel_and_hold_at_time(now)
            self._last_commit.pop(param, None)

    def clear(self) -> None:
        self._pending.clear()
        self._last_commit.clear()

    def _schedule(self, param: AudioParam, target: float, at: float) -> None:
        start = param.cancel_and_hold_at_time(at)
        param.linear_ramp_to_value_at_time(target, at + self.ramp_seconds)
        self._last_commit[param] = at
        log_event("DEBUG", "Smoother", "Ramp scheduled", param=param.name,
                  start=f"{start:.4f}", target=f"{target:.4f}", at=f"{at:.4f}")
