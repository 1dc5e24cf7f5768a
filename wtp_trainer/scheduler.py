"""
Tick Scheduler - fixed-period simulation clock with 1x/5x/10x acceleration
"""

import time
import logging
import threading

from wtp_trainer import config
from wtp_trainer.errors import OutOfRange

logger = logging.getLogger(__name__)


class TickScheduler:
    """Advances simulated time by period x multiplier once per wall-clock period"""

    def __init__(self, step_fn, lock, period=config.TICK_PERIOD_S):
        self.step_fn = step_fn
        self.lock = lock
        self.period = period

        self.tick_number = 0
        self.elapsed = 0.0
        self.speed_multiplier = 1
        self._pending_speed = None

        self._stop_event = threading.Event()
        self._thread = None

    @property
    def requested_speed(self):
        """Multiplier the next tick will run at"""
        return self._pending_speed if self._pending_speed is not None else self.speed_multiplier

    def set_speed_multiplier(self, multiplier):
        """Takes effect at the start of the next tick; sim time is not reset"""
        if isinstance(multiplier, bool) or multiplier not in config.SPEED_MULTIPLIERS:
            raise OutOfRange(f"Speed multiplier must be one of {list(config.SPEED_MULTIPLIERS)}, got {multiplier!r}")
        with self.lock:
            before = self.requested_speed
            self._pending_speed = int(multiplier)
        logger.info(f"Speed multiplier {before}x -> {multiplier}x (next tick)")
        return before, int(multiplier)

    def tick(self):
        """Run exactly one simulation step"""
        with self.lock:
            if self._pending_speed is not None:
                self.speed_multiplier = self._pending_speed
                self._pending_speed = None
            tick_number, elapsed = self.tick_number, self.elapsed
            dt = self.period * self.speed_multiplier
            # step_fn reads the advanced clock; a failed step must not consume a tick number
            self.tick_number += 1
            self.elapsed += dt
            try:
                return self.step_fn(self.tick_number, self.elapsed, dt, self.speed_multiplier)
            except Exception:
                self.tick_number, self.elapsed = tick_number, elapsed
                raise

    def _run(self):
        """Background update loop"""
        deadline = time.monotonic()
        while not self._stop_event.is_set():
            deadline += self.period
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Tick {self.tick_number} failed: {e}")
            delay = deadline - time.monotonic()
            if delay > 0:
                self._stop_event.wait(delay)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='tick-scheduler', daemon=True)
        self._thread.start()
        logger.info(f"Tick scheduler started ({self.period * 1000:.0f} ms period)")

    def stop(self, timeout=2.0):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Tick scheduler stopped")

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()
