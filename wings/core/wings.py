"""Wings — the facade that wires storage, endpoints, bus and dispatcher.

One ``Wings`` instance owns one database file, one registry of endpoints,
one link state bus and one dispatcher.  There is no module-level instance;
hosts create one and pass it where it is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import Executor
from pathlib import Path

from wings.config import WingsConfig
from wings.core.database import StorageError, WingsDatabase
from wings.core.dispatcher import ShareDispatcher
from wings.core.link_bus import LinkErrorHandler, LinkObserver, LinkStateBus
from wings.core.link_store import LinkStore
from wings.core.notifications import NotificationPresenter
from wings.core.share_store import ShareRequestStore
from wings.endpoints.base import Endpoint
from wings.endpoints.delivery import Deliverer, LocalFolderDeliverer
from wings.endpoints.registry import EndpointRegistry, UnknownEndpointError
from wings.models.destination import Destination, ShareRequest, ShareState
from wings.models.endpoints import DEFAULT_ENDPOINT_PROFILES, EndpointKind, EndpointProfile
from wings.models.notifications import CycleReport


class Wings:
    """Share-request queue with pluggable, linkable endpoints.

    Parameters
    ----------
    config:
        Runtime configuration.  Defaults to ``WingsConfig()`` (env driven).
    endpoint_kinds:
        Which endpoints to enable.  Defaults to every known kind.
    deliverers:
        Vendor deliverer per kind.  Kinds without one deliver into
        ``config.outbox_path/<kind>`` with ``LocalFolderDeliverer``.
    executor:
        Background executor for processing cycles.
    logger:
        Logger for facade-level messages.
    presenter:
        Receives the notifications of each cycle.
    profiles:
        Endpoint profile per kind.  Defaults to ``DEFAULT_ENDPOINT_PROFILES``.

    Raises
    ------
    DuplicateEndpointError
        If two enabled endpoints share a kind or an endpoint id.
    UnknownEndpointError
        If a requested kind has no profile.

    Usage
    -----
    >>> with Wings(WingsConfig(storage_path=tmp / "w.db")) as wings:
    ...     wings.subscribe(print)
    ...     wings.share("photo.jpg", EndpointKind.DROPBOX)
    """

    def __init__(
        self,
        config: WingsConfig | None = None,
        endpoint_kinds: Iterable[EndpointKind | str] | None = None,
        *,
        deliverers: Mapping[EndpointKind, Deliverer] | None = None,
        executor: Executor | None = None,
        logger: logging.Logger | None = None,
        presenter: NotificationPresenter | None = None,
        profiles: Mapping[EndpointKind, EndpointProfile] | None = None,
    ) -> None:
        self._config = config or WingsConfig()
        self._log = logger or logging.getLogger(__name__)
        self._closed = False

        self._db = WingsDatabase(
            self._config.storage_path,
            busy_timeout_seconds=self._config.busy_timeout_seconds,
        )
        self._shares = ShareRequestStore(self._db)
        self._links = LinkStore(self._db)
        self._bus = LinkStateBus()
        self._registry = EndpointRegistry()

        kinds = list(EndpointKind) if endpoint_kinds is None else list(endpoint_kinds)
        profiles = profiles or DEFAULT_ENDPOINT_PROFILES
        deliverers = deliverers or {}
        for raw_kind in kinds:
            kind = EndpointKind(raw_kind)
            profile = profiles.get(kind)
            if profile is None:
                raise UnknownEndpointError(kind.value)
            self._registry.check_available(kind, profile.endpoint_id)
            deliverer = deliverers.get(kind) or LocalFolderDeliverer(
                self._config.outbox_path / kind.value,
                timeout_seconds=self._config.delivery_timeout_seconds,
            )
            self._registry.register(
                Endpoint(
                    profile,
                    db=self._db,
                    share_store=self._shares,
                    link_store=self._links,
                    bus=self._bus,
                    deliverer=deliverer,
                )
            )

        if self._config.fail_orphaned_claims_on_start:
            orphaned = self._shares.fail_orphaned_claims()
            if orphaned:
                self._log.warning(
                    "Marked %d interrupted share requests as failed", orphaned
                )

        self._dispatcher = ShareDispatcher(
            self._registry,
            executor=executor,
            presenter=presenter,
            thread_name=self._config.dispatch_thread_name,
        )
        self._log.info(
            "Wings ready: %d endpoints, storage at %s",
            len(self._registry),
            self._db.path,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> WingsConfig:
        return self._config

    @property
    def bus(self) -> LinkStateBus:
        return self._bus

    @property
    def dispatcher(self) -> ShareDispatcher:
        return self._dispatcher

    def get_endpoints(self) -> list[Endpoint]:
        return list(self._registry)

    def get_endpoint(self, endpoint_kind: EndpointKind | str) -> Endpoint:
        """Return the endpoint of *endpoint_kind*; raises ``UnknownEndpointError``."""
        return self._registry.get(endpoint_kind)

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def share(self, file_path: Path | str, endpoint_kind: EndpointKind | str) -> bool:
        """Queue *file_path* for the linked destination of *endpoint_kind*.

        Returns False if the kind is not configured, the endpoint is not
        linked, or the request could not be stored.  Delivery happens
        later on the dispatcher's worker.
        """
        try:
            endpoint = self._registry.get(endpoint_kind)
        except UnknownEndpointError:
            self._log.warning("share: unknown endpoint %r", endpoint_kind)
            return False

        # The link check and the insert share one write transaction, so an
        # unlink either purges the new row or is seen by the check.
        try:
            with self._db.transaction():
                link_info = endpoint.get_link_info()
                if link_info is None:
                    self._log.info("share: %s is not linked", endpoint.kind.value)
                    return False

                destination = Destination(
                    endpoint_id=endpoint.endpoint_id,
                    destination_id=link_info.destination_id,
                )
                self._shares.create_share_request(str(Path(file_path).resolve()), destination)
        except StorageError as exc:
            self._log.error("share: could not queue %s for %s: %s", file_path, endpoint_kind, exc)
            return False

        self._dispatcher.trigger("share")
        return True

    def list_share_requests(
        self,
        endpoint_kind: EndpointKind | str | None = None,
        state: ShareState | None = None,
    ) -> list[ShareRequest]:
        """Return queued rows, optionally narrowed to one endpoint and state."""
        if endpoint_kind is None:
            return self._shares.list_share_requests(state=state)
        endpoint = self._registry.get(endpoint_kind)
        requests: list[ShareRequest] = []
        for destination in endpoint.destinations:
            requests.extend(self._shares.list_share_requests(destination, state))
        return requests

    def retry_failed(self, endpoint_kind: EndpointKind | str) -> int:
        """Re-queue the transient failures of one endpoint and trigger a cycle."""
        endpoint = self._registry.get(endpoint_kind)
        requeued = sum(
            self._shares.retry_failed(destination) for destination in endpoint.destinations
        )
        if requeued:
            self._log.info("Re-queued %d failed requests for %s", requeued, endpoint.kind.value)
            self._dispatcher.trigger("retry")
        return requeued

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def wake(self) -> bool:
        """Ask the dispatcher for a cycle, e.g. when connectivity returns."""
        return self._dispatcher.trigger("wake")

    def flush(self, timeout: float | None = None) -> CycleReport | None:
        """Wait for any running cycle, then run one on the calling thread.

        Returns None if the wait timed out or another cycle started first.
        """
        if not self._dispatcher.wait_idle(timeout):
            return None
        return self._dispatcher.run_cycle("flush")

    # ------------------------------------------------------------------
    # Link observation
    # ------------------------------------------------------------------

    def subscribe(self, observer: LinkObserver) -> None:
        """Observe link changes; the current state of each endpoint is replayed."""
        self._bus.subscribe(observer)

    def unsubscribe(self, observer: LinkObserver) -> None:
        self._bus.unsubscribe(observer)

    def subscribe_link_errors(self, handler: LinkErrorHandler) -> None:
        self._bus.subscribe_errors(handler)

    def unsubscribe_link_errors(self, handler: LinkErrorHandler) -> None:
        self._bus.unsubscribe_errors(handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self, wait: bool = True) -> None:
        """Stop the dispatcher.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._dispatcher.shutdown(wait=wait)
        self._log.debug("Wings closed")

    def __enter__(self) -> Wings:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        kinds = ", ".join(endpoint.kind.value for endpoint in self._registry)
        return f"Wings(endpoints=[{kinds}], storage={self._db.path})"
