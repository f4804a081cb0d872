"""
Bounded background work for webhook-triggered relays
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """
    Run fire-and-forget tasks on a fixed thread pool.

    At most `max_pending` tasks may be queued or running; further submissions
    are rejected and logged. Task failures are logged and never re-raised.
    """

    def __init__(self, max_workers: int = 2, max_pending: int = 16, name: str = "relay"):
        self.max_workers = max_workers
        self.max_pending = max_pending
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._pending = 0
        self._count_lock = threading.Lock()
        self._closed = False

    @property
    def pending(self) -> int:
        with self._count_lock:
            return self._pending

    def submit(
        self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Future | None:
        """Queue `fn`; returns None when the dispatcher is full or shut down"""
        if self._closed:
            logger.error(f"Dispatcher is shut down, dropping task: {description}")
            return None
        if not self._slots.acquire(blocking=False):
            logger.error(
                f"Background queue full ({self.max_pending} pending), dropping task: {description}"
            )
            return None

        with self._count_lock:
            self._pending += 1

        def _run() -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception:
                logger.exception(f"Background task failed: {description}")
                return None
            finally:
                with self._count_lock:
                    self._pending -= 1
                self._slots.release()

        try:
            return self._executor.submit(_run)
        except RuntimeError:
            with self._count_lock:
                self._pending -= 1
            self._slots.release()
            logger.error(f"Dispatcher rejected task: {description}")
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)
