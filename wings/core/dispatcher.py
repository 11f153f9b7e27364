"""ShareDispatcher — runs processing cycles on a single background worker.

A cycle invokes ``process_share_requests()`` on every endpoint once, merges
the returned notifications by id and hands them to the presenter.  At most
one cycle is in flight for the whole system.  A trigger that arrives while
a cycle runs is absorbed rather than queued as a second run: it marks the
running cycle to go round once more before it releases the worker, so
work enqueued after a checkout is still picked up.

An endpoint that raises is logged and recorded in the cycle report; the
remaining endpoints are still processed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from wings.core.notifications import (
    LoggingPresenter,
    NotificationPresenter,
    merge_notifications,
)
from wings.models.notifications import CycleReport, ShareNotification

if TYPE_CHECKING:
    from wings.endpoints.base import Endpoint

logger = logging.getLogger(__name__)


class ShareDispatcher:
    """Single-flight scheduler for share processing cycles.

    Parameters
    ----------
    endpoints:
        The endpoints to process; re-iterated on every cycle.
    executor:
        Background executor for triggered cycles.  When omitted the
        dispatcher creates and owns a single-thread pool.
    presenter:
        Receives the merged notifications of each cycle.
        Defaults to ``LoggingPresenter``.
    thread_name:
        Thread name prefix for the owned worker.

    Usage
    -----
    >>> dispatcher = ShareDispatcher(registry)
    >>> dispatcher.trigger("share")
    True
    >>> dispatcher.wait_idle(5.0)
    True
    """

    def __init__(
        self,
        endpoints: Iterable[Endpoint],
        *,
        executor: Executor | None = None,
        presenter: NotificationPresenter | None = None,
        thread_name: str = "wings-dispatcher",
    ) -> None:
        self._endpoints = endpoints
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=thread_name
        )
        self._presenter = presenter or LoggingPresenter()
        self._lock = threading.Lock()
        self._running = False
        self._closed = False
        self._rerun = False
        self._idle = threading.Event()
        self._idle.set()
        self._last_report: CycleReport | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    @property
    def presenter(self) -> NotificationPresenter:
        return self._presenter

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def trigger(self, reason: str = "trigger") -> bool:
        """Schedule a cycle on the background executor.

        Returns True if a cycle was scheduled, False if one is already in
        flight or the dispatcher is shut down.  An absorbed trigger makes
        the in-flight cycle run once more before it finishes.
        """
        if not self._claim(rerun_if_busy=True):
            logger.debug("Trigger %r absorbed into the running cycle", reason)
            return False
        try:
            future = self._executor.submit(self._run_claimed, reason)
        except RuntimeError as exc:
            self._release()
            logger.error("Could not schedule cycle for %r: %s", reason, exc)
            return False
        future.add_done_callback(self._log_unexpected)
        return True

    def run_cycle(self, reason: str = "manual") -> CycleReport | None:
        """Run one cycle on the calling thread.

        Returns None without doing anything if a cycle is already in flight.
        """
        if not self._claim():
            return None
        return self._run_claimed(reason)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no cycle is in flight.  Returns False on timeout."""
        return self._idle.wait(timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Refuse further triggers and release the owned worker."""
        with self._lock:
            self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
        elif wait:
            self._idle.wait()
        logger.debug("Dispatcher shut down")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _claim(self, *, rerun_if_busy: bool = False) -> bool:
        with self._lock:
            if self._closed:
                return False
            if self._running:
                if rerun_if_busy:
                    self._rerun = True
                return False
            self._running = True
            self._idle.clear()
            return True

    def _release(self) -> None:
        with self._lock:
            self._running = False
            self._rerun = False
            self._idle.set()

    def _rerun_or_release(self) -> bool:
        """Consume a pending rerun, or release the claim.  One lock, no gap."""
        with self._lock:
            if self._rerun and not self._closed:
                self._rerun = False
                return True
            self._running = False
            self._rerun = False
            self._idle.set()
            return False

    def _run_claimed(self, reason: str) -> CycleReport:
        try:
            report = self._cycle(reason)
            while self._rerun_or_release():
                report = self._cycle(f"{reason}+rerun")
        except BaseException:
            self._release()
            raise
        return report

    def _cycle(self, reason: str) -> CycleReport:
        started_at = datetime.now(timezone.utc)
        processed: list[str] = []
        failed: list[str] = []
        batches: list[set[ShareNotification]] = []

        for endpoint in list(self._endpoints):
            try:
                batches.append(endpoint.process_share_requests())
                processed.append(endpoint.kind.value)
            except Exception:  # noqa: BLE001
                logger.exception("Endpoint %s failed during processing", endpoint.kind.value)
                failed.append(endpoint.kind.value)

        notifications = merge_notifications(batches)
        for notification in notifications:
            try:
                self._presenter.present(notification)
            except Exception:  # noqa: BLE001
                logger.exception("Presenter failed for notification %d", notification.id)

        report = CycleReport(
            reason=reason,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            processed_endpoints=processed,
            failed_endpoints=failed,
            notifications=notifications,
        )
        self._last_report = report
        logger.info(
            "Cycle %s (%s): %d endpoints, %d failed, %d notifications",
            report.cycle_id,
            reason,
            len(processed) + len(failed),
            len(failed),
            len(notifications),
        )
        return report

    def _log_unexpected(self, future: Future) -> None:
        if future.cancelled():
            # The cycle never ran, so it never released its claim.
            self._release()
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Background cycle crashed: %s", exc, exc_info=exc)
