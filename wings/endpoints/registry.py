"""Endpoint registry — the configured set of endpoints, keyed by kind and id."""

from __future__ import annotations

from collections.abc import Iterator

from wings.endpoints.base import Endpoint
from wings.models.endpoints import EndpointKind


class DuplicateEndpointError(ValueError):
    """Raised when two endpoints share a kind or an endpoint id."""


class UnknownEndpointError(KeyError):
    """Raised when looking up an endpoint that was not configured."""


class EndpointRegistry:
    """Holds the configured endpoints in registration order.

    Endpoint ids and kinds are both unique within one registry.
    """

    def __init__(self) -> None:
        self._by_kind: dict[EndpointKind, Endpoint] = {}
        self._by_id: dict[int, Endpoint] = {}

    def check_available(self, kind: EndpointKind, endpoint_id: int) -> None:
        """Raise ``DuplicateEndpointError`` if *kind* or *endpoint_id* is taken."""
        if kind in self._by_kind:
            raise DuplicateEndpointError(f"Endpoint kind {kind.value!r} already registered")
        if endpoint_id in self._by_id:
            raise DuplicateEndpointError(
                f"Endpoint id {endpoint_id} already registered "
                f"(by {self._by_id[endpoint_id].kind.value!r})"
            )

    def register(self, endpoint: Endpoint) -> None:
        self.check_available(endpoint.kind, endpoint.endpoint_id)
        self._by_kind[endpoint.kind] = endpoint
        self._by_id[endpoint.endpoint_id] = endpoint

    def get(self, kind: EndpointKind | str) -> Endpoint:
        """Return the endpoint of *kind*.

        Raises
        ------
        UnknownEndpointError
            If no endpoint of that kind is configured.
        """
        try:
            key = EndpointKind(kind)
        except ValueError:
            raise UnknownEndpointError(kind) from None
        try:
            return self._by_kind[key]
        except KeyError:
            raise UnknownEndpointError(key.value) from None

    def by_id(self, endpoint_id: int) -> Endpoint:
        try:
            return self._by_id[endpoint_id]
        except KeyError:
            raise UnknownEndpointError(endpoint_id) from None

    def __contains__(self, kind: object) -> bool:
        try:
            return EndpointKind(kind) in self._by_kind
        except ValueError:
            return False

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(list(self._by_kind.values()))

    def __len__(self) -> int:
        return len(self._by_kind)
