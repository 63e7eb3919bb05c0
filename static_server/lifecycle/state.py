"""Server lifecycle state management."""

import logging
import threading
import time
from typing import Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks draining state and the worker threads of every listener."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        """Check if the listeners should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        return self._draining_event.is_set()

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def has_worker(self, thread: threading.Thread) -> bool:
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def begin_draining(self, reason: str = "signal") -> None:
        """Answer new requests with 503 and let in-flight requests finish."""
        if self._draining_event.is_set():
            return
        self._draining_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown",
            extra={"event": "draining_started", "reason": reason},
        )

    def wait_for_draining(self, timeout: Optional[float] = None) -> bool:
        """Block until draining begins; returns False on timeout."""
        return self._draining_event.wait(timeout)

    def request_stop(self) -> None:
        """Tell the accept loops to close their listeners."""
        self._stop_event.set()

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
