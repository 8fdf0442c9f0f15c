"""Background ticker driving the simulated rate feed on an interval.

Runs in a daemon thread; overlapping ticks cannot happen because every tick
queues on the settings store's writer lock. Ticks rejected because the store
is in manual mode are skipped quietly, other failures are logged and the
loop keeps going.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from pricing_engine.core.errors import ModeMismatch
from pricing_engine.services.simulation import RateSimulationEngine

logger = logging.getLogger("pricing.scheduler")


class RateTicker:
    def __init__(self, engine: RateSimulationEngine, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="rate-ticker", daemon=True)
        self._thread.start()
        logger.info("rate ticker started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("rate ticker stopped", extra={"ticks": self.ticks})

    def run_once(self) -> bool:
        """Run a single tick; True when rates moved."""
        try:
            self._engine.tick()
        except ModeMismatch:
            logger.debug("tick skipped, settings not in simulated mode")
            return False
        except Exception:
            logger.exception("scheduled rate tick failed")
            return False
        self.ticks += 1
        return True

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.run_once()


__all__ = ["RateTicker"]
