"""Tests for Wings data models — immutability, hashing, and profiles."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from wings.core.hasher import canonical_json_bytes, stable_int_hash
from wings.models import (
    DEFAULT_ENDPOINT_PROFILES,
    CycleReport,
    DeliveryOutcome,
    DeliveryResult,
    Destination,
    EndpointKind,
    FailureKind,
    Linked,
    LinkStepResult,
)


class TestDestination:
    def test_hash_is_stable_and_positive(self):
        a = Destination(endpoint_id=0, destination_id=1)
        b = Destination(endpoint_id=0, destination_id=1)
        assert a.hash == b.hash
        assert 0 <= a.hash <= 0x7FFFFFFF

    def test_hash_distinguishes_destinations(self):
        hashes = {
            Destination(endpoint_id=e, destination_id=d).hash
            for e in range(3)
            for d in range(2)
        }
        assert len(hashes) == 6

    def test_frozen(self):
        dest = Destination(endpoint_id=0, destination_id=0)
        with pytest.raises(ValidationError):
            dest.endpoint_id = 2

    def test_str(self):
        assert str(Destination(endpoint_id=1, destination_id=0)) == "1/0"


class TestHasher:
    def test_canonical_json_is_key_order_independent(self):
        assert canonical_json_bytes({"b": 1, "a": 2}) == canonical_json_bytes({"a": 2, "b": 1})

    def test_stable_int_hash_matches_destination(self):
        dest = Destination(endpoint_id=2, destination_id=0)
        assert stable_int_hash({"endpoint_id": 2, "destination_id": 0}) == dest.hash


class TestDeliveryModels:
    def test_failure_kind_mapping(self):
        assert DeliveryOutcome.SUCCESS.failure_kind is None
        assert DeliveryOutcome.AUTH_FAILURE.failure_kind == FailureKind.AUTH
        assert DeliveryOutcome.TRANSIENT_FAILURE.failure_kind == FailureKind.TRANSIENT
        assert DeliveryOutcome.PERMANENT_FAILURE.failure_kind == FailureKind.PERMANENT

    def test_result_constructors(self):
        assert DeliveryResult.success(reference="p1").succeeded
        assert not DeliveryResult.auth_failure("revoked").succeeded
        assert DeliveryResult.permanent_failure().outcome == DeliveryOutcome.PERMANENT_FAILURE


class TestLinkModels:
    def test_step_result_constructors(self):
        ok = LinkStepResult.success(credential="t")
        assert ok.ok and ok.data == {"credential": "t"}
        failed = LinkStepResult.failure("denied")
        assert not failed.ok and failed.reason == "denied"

    def test_linked_hides_credential(self):
        linked = Linked(
            account_name="ada",
            destination_id=0,
            destination_description="d",
            credential="secret-token",
        )
        assert "secret-token" not in repr(linked)


class TestEndpointProfiles:
    def test_every_kind_has_a_profile(self):
        assert set(DEFAULT_ENDPOINT_PROFILES) == set(EndpointKind)

    def test_endpoint_ids_are_unique(self):
        ids = [p.endpoint_id for p in DEFAULT_ENDPOINT_PROFILES.values()]
        assert sorted(ids) == [0, 1, 2]

    def test_facebook_owns_profile_and_page(self):
        profile = DEFAULT_ENDPOINT_PROFILES[EndpointKind.FACEBOOK]
        assert profile.owned_destination_ids == [0, 1]
        assert profile.first_step == "login"
        assert profile.next_step("login") == "open_session"
        assert profile.next_step("settings") is None

    def test_missing_settings(self):
        profile = DEFAULT_ENDPOINT_PROFILES[EndpointKind.FACEBOOK]
        settings = {"account_name": "ada", "credential": "t", "album_name": ""}
        assert profile.missing_settings(1, settings) == [
            "album_name",
            "album_graph_path",
            "page_access_token",
        ]

    def test_every_default_destination_has_a_description(self):
        for profile in DEFAULT_ENDPOINT_PROFILES.values():
            assert profile.default_destination_id in profile.owned_destination_ids
            for dest_id in profile.owned_destination_ids:
                assert dest_id in profile.description_templates


class TestCycleReport:
    def test_defaults(self):
        report = CycleReport()
        assert report.cycle_id.startswith("cyc-")
        assert report.total_successes == 0
        assert report.finished_at is None
