"""Unit tests for EndpointRegistry."""

from __future__ import annotations

import pytest

from wings.endpoints.registry import (
    DuplicateEndpointError,
    EndpointRegistry,
    UnknownEndpointError,
)
from wings.models.endpoints import EndpointKind


@pytest.fixture
def registry(make_endpoint) -> EndpointRegistry:
    reg = EndpointRegistry()
    reg.register(make_endpoint(EndpointKind.FACEBOOK))
    reg.register(make_endpoint(EndpointKind.DROPBOX))
    return reg


class TestEndpointRegistry:
    def test_lookup_by_kind_and_id(self, registry):
        assert registry.get(EndpointKind.DROPBOX).endpoint_id == 1
        assert registry.get("facebook").endpoint_id == 0
        assert registry.by_id(1).kind == EndpointKind.DROPBOX

    def test_iterates_in_registration_order(self, registry):
        assert [e.kind for e in registry] == [EndpointKind.FACEBOOK, EndpointKind.DROPBOX]
        assert len(registry) == 2

    def test_contains(self, registry):
        assert "dropbox" in registry
        assert EndpointKind.CLOUD_PRINT not in registry
        assert "myspace" not in registry

    def test_unknown_kind(self, registry):
        with pytest.raises(UnknownEndpointError):
            registry.get(EndpointKind.CLOUD_PRINT)
        with pytest.raises(UnknownEndpointError):
            registry.get("myspace")
        with pytest.raises(UnknownEndpointError):
            registry.by_id(9)

    def test_duplicate_kind(self, registry, make_endpoint):
        with pytest.raises(DuplicateEndpointError):
            registry.register(make_endpoint(EndpointKind.DROPBOX))

    def test_check_available_rejects_taken_id(self, registry):
        with pytest.raises(DuplicateEndpointError, match="already registered"):
            registry.check_available(EndpointKind.CLOUD_PRINT, 1)
