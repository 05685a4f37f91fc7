"""
Fire-and-forget export queue.

Approved quote ids are queued after the approval transaction commits and
exported by a single daemon worker thread.  An export failure is retried,
then logged as ``quote_export_failed`` and dropped; it never reaches the
approver and never affects the committed approval.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable
from uuid import UUID

from quote_kernel.logging_config import get_logger
from quote_services.quote_exporter import QuoteExporter

logger = get_logger("services.export_dispatcher")

_POLL_SECONDS = 0.1


class ExportDispatcher:
    """Single-worker background queue in front of a QuoteExporter."""

    def __init__(
        self,
        exporter: QuoteExporter,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._exporter = exporter
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep
        self._queue: queue.Queue[UUID] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._running = False
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(
                target=self._run,
                name="quote-export-worker",
                daemon=True,
            )
            self._worker.start()
        logger.debug("export_dispatcher_started")

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            self._running = False
            worker = self._worker
            self._worker = None
        if worker is not None:
            worker.join(timeout=timeout)
            logger.debug("export_dispatcher_stopped")

    def enqueue(self, quote_id: UUID) -> None:
        """Queue a quote for export.  Never raises into the caller."""
        self.start()
        self._queue.put(quote_id)
        logger.debug("quote_export_queued", extra={"quote_id": str(quote_id)})

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every queued export has been attempted.

        Returns False if ``timeout`` elapsed first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _run(self) -> None:
        while self._running:
            try:
                quote_id = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            try:
                self._export_with_retry(quote_id)
            finally:
                self._queue.task_done()

    def _export_with_retry(self, quote_id: UUID) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._exporter.export(quote_id)
                return
            except Exception:
                logger.warning(
                    "quote_export_attempt_failed",
                    extra={
                        "quote_id": str(quote_id),
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                    },
                    exc_info=True,
                )
                if attempt < self._max_attempts:
                    self._sleep(self._retry_delay)

        logger.error(
            "quote_export_failed",
            extra={"quote_id": str(quote_id), "attempts": self._max_attempts},
        )
