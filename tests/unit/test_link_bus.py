"""Unit tests for the link state bus — replay, ordering, and error channel."""

from __future__ import annotations

import threading

import pytest

from wings.core.link_bus import LinkStateBus, UnknownChannelError
from wings.endpoints.base import LinkError
from wings.models.endpoints import EndpointKind
from wings.models.link import LinkEvent


def _event(endpoint_id: int, linked: bool, kind: str = "dropbox") -> LinkEvent:
    return LinkEvent(endpoint_id=endpoint_id, endpoint_kind=kind, is_linked=linked)


@pytest.fixture
def two_channel_bus() -> LinkStateBus:
    bus = LinkStateBus()
    bus.register_channel(0, "facebook", current=lambda: True)
    bus.register_channel(1, "dropbox", current=lambda: False)
    return bus


# ---------------------------------------------------------------------------
# Test: subscription replay
# ---------------------------------------------------------------------------


class TestSubscribe:
    def test_replays_current_state_per_endpoint(self, two_channel_bus):
        seen: list[LinkEvent] = []
        two_channel_bus.subscribe(seen.append)
        assert seen == [_event(0, True, "facebook"), _event(1, False)]

    def test_duplicate_subscribe_is_noop(self, two_channel_bus):
        seen: list[LinkEvent] = []
        two_channel_bus.subscribe(seen.append)
        two_channel_bus.subscribe(seen.append)
        assert len(seen) == 2

    def test_unsubscribe_stops_delivery(self, two_channel_bus):
        seen: list[LinkEvent] = []
        two_channel_bus.subscribe(seen.append)
        two_channel_bus.unsubscribe(seen.append)
        two_channel_bus.publish(_event(1, True))
        assert len(seen) == 2

    def test_unsubscribe_unknown_observer(self, two_channel_bus):
        two_channel_bus.unsubscribe(lambda event: None)

    def test_replay_precedes_concurrent_transition(self):
        """A transition published during subscribe is seen after the replay."""
        bus = LinkStateBus()
        linked = threading.Event()
        in_replay = threading.Event()
        release = threading.Event()

        def current() -> bool:
            in_replay.set()
            release.wait(timeout=5)
            return linked.is_set()

        bus.register_channel(1, "dropbox", current=current)
        seen: list[LinkEvent] = []
        subscriber = threading.Thread(target=bus.subscribe, args=(seen.append,))
        subscriber.start()
        assert in_replay.wait(timeout=5)

        def transition() -> None:
            linked.set()
            bus.publish(_event(1, True))

        publisher = threading.Thread(target=transition)
        publisher.start()
        release.set()
        subscriber.join(timeout=5)
        publisher.join(timeout=5)

        assert seen[-1] == _event(1, True)
        assert len(seen) == 2


# ---------------------------------------------------------------------------
# Test: publish
# ---------------------------------------------------------------------------


class TestPublish:
    def test_events_delivered_in_publish_order(self, two_channel_bus):
        seen: list[LinkEvent] = []
        two_channel_bus.subscribe(seen.append)
        seen.clear()
        for linked in (True, False, True):
            two_channel_bus.publish(_event(1, linked))
        assert [e.is_linked for e in seen] == [True, False, True]

    def test_failing_observer_does_not_block_others(self, two_channel_bus):
        def broken(event: LinkEvent) -> None:
            raise RuntimeError("observer bug")

        seen: list[LinkEvent] = []
        two_channel_bus.subscribe(broken)
        two_channel_bus.subscribe(seen.append)
        two_channel_bus.publish(_event(1, True))
        assert seen[-1] == _event(1, True)

    def test_publish_unknown_channel(self, two_channel_bus):
        with pytest.raises(UnknownChannelError):
            two_channel_bus.publish(_event(9, True))


# ---------------------------------------------------------------------------
# Test: link error channel
# ---------------------------------------------------------------------------


class TestLinkErrors:
    def test_report_reaches_handlers(self, bus):
        errors: list[LinkError] = []
        bus.subscribe_errors(errors.append)
        bus.report_error(LinkError(EndpointKind.DROPBOX, "authorize", "denied"))
        assert len(errors) == 1
        assert errors[0].reason == "denied"
        assert "dropbox" in str(errors[0])

    def test_report_without_handlers_is_logged(self, bus, caplog):
        with caplog.at_level("WARNING", logger="wings.core.link_bus"):
            bus.report_error(LinkError(EndpointKind.FACEBOOK, "login", "cancelled"))
        assert "cancelled" in caplog.text

    def test_unsubscribe_errors(self, bus):
        errors: list[LinkError] = []
        bus.subscribe_errors(errors.append)
        bus.unsubscribe_errors(errors.append)
        bus.report_error(LinkError(EndpointKind.DROPBOX, "account", "x"))
        assert errors == []
