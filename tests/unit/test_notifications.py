"""Unit tests for notification aggregation, merging, and presenters."""

from __future__ import annotations

from wings.core.notifications import (
    DestinationTally,
    InMemoryPresenter,
    LoggingPresenter,
    NotificationAggregator,
    NotificationPresenter,
    merge_notifications,
)
from wings.models.delivery import DeliveryOutcome, DeliveryResult
from wings.models.destination import Destination
from wings.models.notifications import ShareNotification

PROFILE = Destination(endpoint_id=0, destination_id=0)
PAGE = Destination(endpoint_id=0, destination_id=1)


def _render(tally: DestinationTally) -> ShareNotification:
    return ShareNotification(
        id=tally.destination.hash,
        title="t",
        message=f"{tally.successes} shared",
        ticker="done",
        launch_target=tally.reference or "",
        success_count=tally.successes,
        destination=tally.destination,
    )


def _notification(destination: Destination, count: int) -> ShareNotification:
    return ShareNotification(
        id=destination.hash,
        title="t",
        message="m",
        ticker="k",
        success_count=count,
        destination=destination,
    )


# ---------------------------------------------------------------------------
# Test: NotificationAggregator
# ---------------------------------------------------------------------------


class TestAggregator:
    def test_tallies_outcomes_per_destination(self):
        agg = NotificationAggregator()
        agg.record(PROFILE, DeliveryResult.success())
        agg.record(PROFILE, DeliveryResult.success())
        agg.record(PROFILE, DeliveryResult.permanent_failure())
        agg.record(PAGE, DeliveryResult.transient_failure())

        tally = agg.tally(PROFILE)
        assert tally.successes == 2
        assert tally.attempts == 3
        assert tally.counts[DeliveryOutcome.PERMANENT_FAILURE] == 1
        assert agg.tally(PAGE).successes == 0

    def test_build_skips_destinations_without_success(self):
        agg = NotificationAggregator()
        agg.record(PROFILE, DeliveryResult.success())
        agg.record(PAGE, DeliveryResult.auth_failure())

        notifications = agg.build(_render)
        assert len(notifications) == 1
        (only,) = notifications
        assert only.id == PROFILE.hash
        assert only.success_count == 1

    def test_build_empty(self):
        assert NotificationAggregator().build(_render) == set()

    def test_keeps_first_reference(self):
        agg = NotificationAggregator()
        agg.record(PROFILE, DeliveryResult.success())
        agg.record(PROFILE, DeliveryResult.success(reference="photo-1"))
        agg.record(PROFILE, DeliveryResult.success(reference="photo-2"))
        assert agg.tally(PROFILE).reference == "photo-1"

    def test_notification_id_is_stable_across_passes(self):
        first = NotificationAggregator()
        first.record(PAGE, DeliveryResult.success())
        second = NotificationAggregator()
        second.record(PAGE, DeliveryResult.success())
        second.record(PAGE, DeliveryResult.success())

        (a,) = first.build(_render)
        (b,) = second.build(_render)
        assert a.id == b.id == PAGE.hash


# ---------------------------------------------------------------------------
# Test: merge_notifications
# ---------------------------------------------------------------------------


class TestMerge:
    def test_merges_batches_keyed_by_id(self):
        merged = merge_notifications([{_notification(PROFILE, 2)}, {_notification(PAGE, 1)}])
        assert {n.id for n in merged} == {PROFILE.hash, PAGE.hash}

    def test_colliding_ids_sum_counts(self):
        merged = merge_notifications([[_notification(PROFILE, 2)], [_notification(PROFILE, 3)]])
        assert len(merged) == 1
        assert merged[0].success_count == 5

    def test_sorted_by_id(self):
        merged = merge_notifications([[_notification(PAGE, 1), _notification(PROFILE, 1)]])
        assert [n.id for n in merged] == sorted(n.id for n in merged)


# ---------------------------------------------------------------------------
# Test: presenters
# ---------------------------------------------------------------------------


class TestPresenters:
    def test_presenters_satisfy_protocol(self):
        assert isinstance(LoggingPresenter(), NotificationPresenter)
        assert isinstance(InMemoryPresenter(), NotificationPresenter)

    def test_in_memory_updates_in_place(self):
        presenter = InMemoryPresenter()
        presenter.present(_notification(PROFILE, 1))
        presenter.present(_notification(PROFILE, 4))
        presenter.present(_notification(PAGE, 1))

        assert len(presenter.shown) == 2
        assert presenter.get(PROFILE.hash).success_count == 4
        assert presenter.presented_count == 3

    def test_in_memory_clear(self):
        presenter = InMemoryPresenter()
        presenter.present(_notification(PROFILE, 1))
        presenter.clear()
        assert presenter.shown == []
        assert presenter.get(PROFILE.hash) is None

    def test_logging_presenter_logs(self, caplog):
        with caplog.at_level("INFO", logger="wings.core.notifications"):
            LoggingPresenter().present(_notification(PROFILE, 1))
        assert "notification" in caplog.text
