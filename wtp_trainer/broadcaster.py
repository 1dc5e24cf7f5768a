"""
Realtime Broadcaster - fans each tick's payload out to observers
"""

import logging
import threading

logger = logging.getLogger(__name__)


class RealtimeBroadcaster:
    """Observers are plain callables taking the payload dict"""

    def __init__(self):
        self._observers = []
        self._lock = threading.Lock()
        self._latest = None

    def subscribe(self, observer):
        """Register an observer; returns a function that unsubscribes it"""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def publish(self, payload):
        self._latest = payload
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(payload)
            except Exception as e:
                logger.error(f"Broadcast observer {observer!r} failed: {e}")

    def latest(self):
        return self._latest

    def __len__(self):
        return len(self._observers)
