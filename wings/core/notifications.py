"""Notification aggregation and presentation.

``NotificationAggregator`` tallies delivery outcomes per destination within
one processing pass and builds at most one ``ShareNotification`` per
destination.  The notification id is the destination hash, so the same
destination yields the same id every cycle and a presenter can update in
place instead of stacking duplicates.

Presenters are pluggable targets implementing ``NotificationPresenter``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from wings.models.delivery import DeliveryOutcome, DeliveryResult
from wings.models.destination import Destination
from wings.models.notifications import ShareNotification

logger = logging.getLogger(__name__)


class DestinationTally(BaseModel):
    """Outcome counts for one destination within one pass."""

    destination: Destination
    counts: dict[DeliveryOutcome, int] = Field(
        default_factory=lambda: {outcome: 0 for outcome in DeliveryOutcome}
    )
    reference: str | None = None

    @property
    def successes(self) -> int:
        return self.counts[DeliveryOutcome.SUCCESS]

    @property
    def attempts(self) -> int:
        return sum(self.counts.values())


NotificationRenderer = Callable[[DestinationTally], ShareNotification]


class NotificationAggregator:
    """Groups delivery results by destination hash."""

    def __init__(self) -> None:
        self._tallies: dict[int, DestinationTally] = {}

    def record(self, destination: Destination, result: DeliveryResult) -> None:
        tally = self._tallies.get(destination.hash)
        if tally is None:
            tally = DestinationTally(destination=destination)
            self._tallies[destination.hash] = tally
        tally.counts[result.outcome] += 1
        if result.succeeded and result.reference and tally.reference is None:
            tally.reference = result.reference

    def tally(self, destination: Destination) -> DestinationTally | None:
        return self._tallies.get(destination.hash)

    @property
    def tallies(self) -> list[DestinationTally]:
        return list(self._tallies.values())

    def build(self, render: NotificationRenderer) -> set[ShareNotification]:
        """Render one notification per destination with at least one success."""
        notifications: set[ShareNotification] = set()
        for tally in self._tallies.values():
            if tally.successes > 0:
                notifications.add(render(tally))
        return notifications


def merge_notifications(
    batches: Iterable[Iterable[ShareNotification]],
) -> list[ShareNotification]:
    """Combine several endpoints' notifications into one list keyed by id.

    Should two notifications share an id within a cycle, the success
    counts are summed onto the later one.
    """
    merged: dict[int, ShareNotification] = {}
    for batch in batches:
        for notification in batch:
            previous = merged.get(notification.id)
            if previous is not None:
                notification = notification.model_copy(
                    update={"success_count": previous.success_count + notification.success_count}
                )
            merged[notification.id] = notification
    return sorted(merged.values(), key=lambda n: n.id)


# ---------------------------------------------------------------------------
# Presenters
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationPresenter(Protocol):
    """Protocol that every notification presentation target must implement.

    Implementations should treat ``notification.id`` as an update key:
    presenting an id that is already shown replaces it.
    """

    def present(self, notification: ShareNotification) -> None:
        ...


class LoggingPresenter:
    """Default presenter — writes notifications to the log."""

    def present(self, notification: ShareNotification) -> None:
        logger.info(
            "[notification %d] %s: %s (%s)",
            notification.id,
            notification.title,
            notification.message,
            notification.launch_target or "no target",
        )


class InMemoryPresenter:
    """Keeps the latest notification per id, like a notification tray."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._shown: dict[int, ShareNotification] = {}
        self.presented_count = 0

    def present(self, notification: ShareNotification) -> None:
        with self._lock:
            self._shown[notification.id] = notification
            self.presented_count += 1

    @property
    def shown(self) -> list[ShareNotification]:
        with self._lock:
            return list(self._shown.values())

    def get(self, notification_id: int) -> ShareNotification | None:
        with self._lock:
            return self._shown.get(notification_id)

    def clear(self) -> None:
        with self._lock:
            self._shown.clear()
