"""Endpoint: link state machine and delivery routine for one backend.

State machine (persisted in ``endpoint_links``):

    Unlinked -> LinkInProgress(step0) -> ... -> LinkInProgress(stepN) -> Linked

- Any step failure, unexpected step id, or invalid final settings returns
  the endpoint to Unlinked, purges its queue and surfaces a ``LinkError``.
- Linked -> Unlinked on ``unlink()`` or on an auth failure during delivery.

Every backend is this one class; what differs between backends lives in
its ``EndpointProfile`` (ids, steps, validation, text) and its injected
``Deliverer`` (vendor I/O).
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from wings.core.database import StorageError, WingsDatabase
from wings.core.link_bus import LinkStateBus
from wings.core.link_store import LinkRecord, LinkStore
from wings.core.notifications import DestinationTally, NotificationAggregator
from wings.core.share_store import ShareRequestStore
from wings.endpoints.delivery import Deliverer, classify_exception
from wings.models.delivery import DeliveryOutcome, DeliveryResult
from wings.models.destination import Destination, ShareRequest
from wings.models.endpoints import EndpointKind, EndpointProfile
from wings.models.link import LinkEvent, LinkInfo, Linked, LinkState, LinkStepResult
from wings.models.notifications import ShareNotification

logger = logging.getLogger(__name__)

# Link data keys that are stored in dedicated columns rather than settings.
_RESERVED_KEYS = frozenset({"account_name", "credential", "destination_id"})


class LinkError(RuntimeError):
    """A link flow failed.  Surfaced to the user through the link bus."""

    def __init__(self, endpoint_kind: EndpointKind, step: str | None, reason: str) -> None:
        self.endpoint_kind = endpoint_kind
        self.step = step
        self.reason = reason
        super().__init__(
            f"Linking {endpoint_kind.value} failed at step {step!r}: {reason}"
        )


class _FormatFields(dict):
    """``str.format_map`` mapping that renders unknown fields as ''."""

    def __missing__(self, key: str) -> str:
        return ""


class Endpoint:
    """A pluggable backend that can link an account and deliver files to it.

    Parameters
    ----------
    profile:
        The backend variant definition.
    db:
        The shared database; used to make unlink atomic across tables.
    share_store:
        The share-request queue.
    link_store:
        The persisted link records.
    bus:
        The link state bus this endpoint publishes on.
    deliverer:
        Vendor transfer implementation.
    """

    def __init__(
        self,
        profile: EndpointProfile,
        *,
        db: WingsDatabase,
        share_store: ShareRequestStore,
        link_store: LinkStore,
        bus: LinkStateBus,
        deliverer: Deliverer,
    ) -> None:
        self._profile = profile
        self._db = db
        self._shares = share_store
        self._links = link_store
        self._bus = bus
        self._deliverer = deliverer
        # Serializes link transitions so published events match persisted order.
        self._link_lock = threading.RLock()
        self._bus.register_channel(
            profile.endpoint_id, profile.kind.value, current=self.is_linked
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def endpoint_id(self) -> int:
        return self._profile.endpoint_id

    @property
    def kind(self) -> EndpointKind:
        return self._profile.kind

    @property
    def profile(self) -> EndpointProfile:
        return self._profile

    @property
    def display_name(self) -> str:
        return self._profile.display_name

    @property
    def destinations(self) -> list[Destination]:
        """Every destination this endpoint owns, in a stable order."""
        return [
            Destination(endpoint_id=self.endpoint_id, destination_id=dest_id)
            for dest_id in self._profile.owned_destination_ids
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def link_state(self) -> LinkState:
        return self._links.get(self.endpoint_id).state

    def is_linked(self) -> bool:
        return isinstance(self.link_state(), Linked)

    def get_link_info(self) -> LinkInfo | None:
        """Return the link information, or None if unlinked."""
        return self._links.get(self.endpoint_id).link_info

    # ------------------------------------------------------------------
    # Link flow
    # ------------------------------------------------------------------

    def start_link_request(self) -> str | None:
        """Begin the external authorization flow.

        Persists ``LinkInProgress`` at the first step and returns that
        step id so the host knows which round trip to perform.  The
        outcome arrives later through ``complete_link_request``.  Starting
        over an existing link unlinks it first.

        Returns None if the flow could not be recorded; a ``LinkError``
        is surfaced in that case.
        """
        first_step = self._profile.first_step
        with self._link_lock:
            if self._links.get(self.endpoint_id).linked:
                logger.info("%s: relinking, dropping the current link", self.kind.value)
                self.unlink()
            try:
                self._links.begin_flow(self.endpoint_id, first_step)
            except StorageError as exc:
                self._bus.report_error(
                    LinkError(self.kind, first_step, f"storage failure: {exc}")
                )
                return None
        logger.info("%s: link flow started at step %r", self.kind.value, first_step)
        return first_step

    def complete_link_request(self, step_id: str, result: LinkStepResult) -> LinkState:
        """Resume the link flow with the outcome of step *step_id*.

        The step id is validated against the persisted expectation before
        any transition.  A completion arriving while no flow is in
        progress is ignored.

        Returns the link state after the transition.
        """
        with self._link_lock:
            record = self._links.get(self.endpoint_id)
            expected = record.link_step
            if expected is None:
                logger.warning(
                    "%s: ignoring completion of step %r, no link flow in progress",
                    self.kind.value,
                    step_id,
                )
                return record.state

            if step_id != expected:
                self._fail_link(step_id, f"unexpected step {step_id!r}, expected {expected!r}")
            elif not result.ok:
                self._fail_link(step_id, result.reason or "step was not completed")
            else:
                self._advance_link(record, step_id, result)
            return self.link_state()

    def _advance_link(self, record: LinkRecord, step_id: str, result: LinkStepResult) -> None:
        pending = {**record.pending, **result.data}
        next_step = self._profile.next_step(step_id)
        try:
            if next_step is not None:
                self._links.advance_flow(self.endpoint_id, next_step, pending)
                logger.info(
                    "%s: link step %r done, awaiting %r", self.kind.value, step_id, next_step
                )
                return
            self._finish_link(step_id, pending)
        except StorageError as exc:
            self._fail_link(step_id, f"storage failure: {exc}")

    def _finish_link(self, step_id: str, pending: dict[str, str]) -> None:
        raw_destination = pending.get(
            "destination_id", str(self._profile.default_destination_id)
        )
        try:
            destination_id = int(raw_destination)
        except ValueError:
            self._fail_link(step_id, f"malformed destination id {raw_destination!r}")
            return
        if destination_id not in self._profile.owned_destination_ids:
            self._fail_link(step_id, f"unknown destination id {destination_id}")
            return

        missing = self._profile.missing_settings(destination_id, pending)
        if missing:
            self._fail_link(step_id, f"missing settings: {', '.join(missing)}")
            return

        settings = {k: v for k, v in pending.items() if k not in _RESERVED_KEYS}
        description = self._profile.description_templates[destination_id].format_map(
            _FormatFields(pending)
        )
        self._links.store_link(
            self.endpoint_id,
            account_name=pending["account_name"],
            destination_id=destination_id,
            destination_description=description,
            credential=pending["credential"],
            settings=settings,
        )
        logger.info("%s: linked to %s", self.kind.value, description)
        self._publish(is_linked=True)

    def _fail_link(self, step_id: str, reason: str) -> None:
        self.unlink()
        self._bus.report_error(LinkError(self.kind, step_id, reason))

    def unlink(self) -> None:
        """Drop the link and every queued request of every owned destination.

        Idempotent.  The record flip and the purge share one transaction;
        ``LinkEvent(is_linked=False)`` is published on every call that
        commits.  A storage failure leaves the link as it was.
        """
        with self._link_lock:
            try:
                with self._db.transaction():
                    self._links.clear(self.endpoint_id)
                    for destination in self.destinations:
                        self._shares.delete_share_requests(destination)
            except StorageError as exc:
                # Rolled back; the previous state stands.
                logger.error("%s: unlink failed: %s", self.kind.value, exc)
                return
            logger.info("%s: unlinked", self.kind.value)
            self._publish(is_linked=False)

    def _publish(self, *, is_linked: bool) -> None:
        self._bus.publish(
            LinkEvent(
                endpoint_id=self.endpoint_id,
                endpoint_kind=self.kind.value,
                is_linked=is_linked,
            )
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def process_share_requests(self) -> set[ShareNotification]:
        """Deliver every pending request of every owned destination.

        Runs on the dispatcher's worker thread and blocks on each
        transfer.  Each destination's checkout is processed to completion,
        in checkout order, before moving to the next destination.  An auth
        failure unlinks the endpoint and ends processing; the unlink purges
        whatever was still queued or claimed.

        Returns one notification per destination with at least one success.
        """
        record = self._links.get(self.endpoint_id)
        state = record.state
        if not isinstance(state, Linked):
            return set()

        aggregator = NotificationAggregator()

        def render(tally: DestinationTally) -> ShareNotification:
            return self._render_notification(tally, record)

        for destination in self.destinations:
            for request in self._shares.checkout_share_requests(destination):
                result = self._attempt(request, state.credential, record.settings)
                aggregator.record(destination, result)

                if result.succeeded:
                    self._shares.mark_successful(request.id)
                    logger.debug("%s: delivered %s", self.kind.value, request.file_path)
                    continue

                self._shares.mark_failed(request.id, result.outcome.failure_kind)
                logger.info(
                    "%s: delivery of %s failed (%s) %s",
                    self.kind.value,
                    request.file_path,
                    result.outcome.value,
                    result.detail,
                )
                if result.outcome == DeliveryOutcome.AUTH_FAILURE:
                    logger.warning(
                        "%s: credential rejected, unlinking", self.kind.value
                    )
                    self.unlink()
                    return aggregator.build(render)

        for tally in aggregator.tallies:
            logger.info(
                "%s: %d/%d delivered to %s",
                self.kind.value,
                tally.successes,
                tally.attempts,
                tally.destination,
            )
        return aggregator.build(render)

    def _attempt(
        self, request: ShareRequest, credential: str, settings: dict[str, str]
    ) -> DeliveryResult:
        """Deliver one request, classifying every possible failure."""
        path = Path(request.file_path)
        if not path.is_file() or not os.access(path, os.R_OK):
            return DeliveryResult.permanent_failure(f"file missing or unreadable: {path}")

        try:
            result = self._deliverer.deliver(
                path, request.destination, credential, settings=settings
            )
        except Exception as exc:  # noqa: BLE001
            return DeliveryResult(
                outcome=classify_exception(exc),
                detail=str(exc) or type(exc).__name__,
            )

        if isinstance(result, DeliveryOutcome):
            return DeliveryResult(outcome=result)
        if not isinstance(result, DeliveryResult):
            return DeliveryResult.transient_failure(
                f"deliverer returned {type(result).__name__}"
            )
        return result

    def _render_notification(
        self, tally: DestinationTally, record: LinkRecord
    ) -> ShareNotification:
        templates = self._profile.notifications
        fields = _FormatFields(record.settings)
        fields.update(
            count=tally.successes,
            account_name=record.account_name or "",
            destination_description=record.destination_description or "",
            reference=tally.reference or "",
        )
        message = templates.message_single if tally.successes == 1 else templates.message_multi
        # A launch target built around a missing reference is unusable.
        launch_target = ""
        needs_reference = "{reference}" in templates.launch_target
        if templates.launch_target and (tally.reference or not needs_reference):
            launch_target = templates.launch_target.format_map(fields)

        return ShareNotification(
            id=tally.destination.hash,
            title=templates.title.format_map(fields),
            message=message.format_map(fields),
            ticker=templates.ticker.format_map(fields),
            launch_target=launch_target,
            success_count=tally.successes,
            destination=tally.destination,
        )

    def __repr__(self) -> str:
        return f"Endpoint(kind={self.kind.value!r}, endpoint_id={self.endpoint_id})"
