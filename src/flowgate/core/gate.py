"""Admission gate: in-flight bookkeeping for the executor.

The gate hands out :class:`Slot` objects, one per admitted task, and
refuses once the configured concurrency cap is reached.  A slot is a
single-fire release token: however many code paths try to release it,
the in-flight count drops exactly once.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class Slot:
    """One unit of in-flight budget held by an admitted task."""

    __slots__ = ("_gate", "_released")

    def __init__(self, gate: AdmissionGate) -> None:
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Return the slot to the gate.

        Returns ``True`` for the call that actually released it and
        ``False`` for every later call.
        """
        if self._released:
            return False
        self._released = True
        self._gate._on_release()
        return True


class AdmissionGate:
    """Caps the number of concurrently running tasks.

    ``limit=None`` disables the cap.  The gate is not thread-safe; it
    expects every call to come from the event loop thread.
    """

    def __init__(self, limit: int | None = None) -> None:
        self._limit = limit
        self._in_flight: int = 0

    @property
    def limit(self) -> int | None:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_open(self) -> bool:
        """True when one more task may start."""
        return self._limit is None or self._in_flight < self._limit

    def try_acquire(self) -> Slot | None:
        """Take a slot if the cap allows it, else return ``None``."""
        if not self.is_open:
            return None
        self._in_flight += 1
        return Slot(self)

    def _on_release(self) -> None:
        if self._in_flight <= 0:
            # Only reachable if a Slot was forged outside try_acquire().
            logger.error("Slot released with no tasks in flight")
            return
        self._in_flight -= 1
