"""Link state bus — per-endpoint channels with replay of the current state.

Each endpoint owns one channel.  Subscribing registers the observer on
every channel and immediately hands it one ``LinkEvent`` per endpoint
reflecting that endpoint's current ``is_linked()``.  Publishing and
subscribing take the same per-channel lock, so the replayed event always
precedes any event for a later transition, and events of one endpoint are
delivered in the order they were published.  No ordering is promised
between different endpoints.

A second, bus-wide channel carries user-visible link errors.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from wings.models.link import LinkEvent

if TYPE_CHECKING:
    from wings.endpoints.base import LinkError

logger = logging.getLogger(__name__)

LinkObserver = Callable[[LinkEvent], None]
LinkErrorHandler = Callable[["LinkError"], None]


class UnknownChannelError(KeyError):
    """Raised when publishing for an endpoint that has no channel."""


class _LinkChannel:
    """Subscribers and current-state provider for one endpoint."""

    def __init__(
        self, endpoint_id: int, endpoint_kind: str, current: Callable[[], bool]
    ) -> None:
        self.endpoint_id = endpoint_id
        self.endpoint_kind = endpoint_kind
        self.current = current
        # Re-entrant: observers may publish or unsubscribe from a callback.
        self.lock = threading.RLock()
        self.observers: list[LinkObserver] = []

    def snapshot_event(self) -> LinkEvent:
        return LinkEvent(
            endpoint_id=self.endpoint_id,
            endpoint_kind=self.endpoint_kind,
            is_linked=self.current(),
        )


class LinkStateBus:
    """Explicit publish/subscribe channel set for link events.

    Usage
    -----
    >>> bus = LinkStateBus()
    >>> bus.register_channel(1, "dropbox", current=lambda: False)
    >>> seen = []
    >>> bus.subscribe(seen.append)
    >>> seen[0].is_linked
    False
    """

    def __init__(self) -> None:
        self._channels: dict[int, _LinkChannel] = {}
        self._error_handlers: list[LinkErrorHandler] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Channel management
    # ------------------------------------------------------------------

    def register_channel(
        self, endpoint_id: int, endpoint_kind: str, *, current: Callable[[], bool]
    ) -> None:
        """Create the channel for an endpoint.  Re-registering replaces the provider."""
        with self._lock:
            existing = self._channels.get(endpoint_id)
            if existing is not None:
                existing.current = current
                return
            self._channels[endpoint_id] = _LinkChannel(endpoint_id, endpoint_kind, current)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, observer: LinkObserver) -> None:
        """Attach *observer* to every channel and replay each current state.

        Subscribing the same observer twice is a no-op (no second replay).
        """
        with self._lock:
            channels = [self._channels[eid] for eid in sorted(self._channels)]

        for channel in channels:
            with channel.lock:
                if observer in channel.observers:
                    continue
                channel.observers.append(observer)
                self._deliver(observer, channel.snapshot_event())

    def unsubscribe(self, observer: LinkObserver) -> None:
        """Detach *observer* from every channel.  Unknown observers are ignored."""
        with self._lock:
            channels = list(self._channels.values())
        for channel in channels:
            with channel.lock:
                try:
                    channel.observers.remove(observer)
                except ValueError:
                    pass

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(self, event: LinkEvent) -> None:
        """Deliver *event* to every observer of its endpoint's channel."""
        with self._lock:
            channel = self._channels.get(event.endpoint_id)
        if channel is None:
            raise UnknownChannelError(event.endpoint_id)

        with channel.lock:
            for observer in list(channel.observers):
                self._deliver(observer, event)

    @staticmethod
    def _deliver(observer: LinkObserver, event: LinkEvent) -> None:
        try:
            observer(event)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Link observer %r failed for endpoint %d", observer, event.endpoint_id
            )

    # ------------------------------------------------------------------
    # Link errors
    # ------------------------------------------------------------------

    def subscribe_errors(self, handler: LinkErrorHandler) -> None:
        with self._lock:
            if handler not in self._error_handlers:
                self._error_handlers.append(handler)

    def unsubscribe_errors(self, handler: LinkErrorHandler) -> None:
        with self._lock:
            try:
                self._error_handlers.remove(handler)
            except ValueError:
                pass

    def report_error(self, error: LinkError) -> None:
        """Surface a link error to every error handler.

        With no handler attached the error is still logged, so it is never
        silently dropped.
        """
        logger.warning("Link error: %s", error)
        with self._lock:
            handlers = list(self._error_handlers)
        for handler in handlers:
            try:
                handler(error)
            except Exception:  # noqa: BLE001
                logger.exception("Link error handler %r failed", handler)
