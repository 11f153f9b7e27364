"""Wings endpoints — link state machine, delivery, and the endpoint registry."""

from wings.endpoints.base import Endpoint, LinkError
from wings.endpoints.delivery import (
    Deliverer,
    DeliveryAuthError,
    LocalFolderDeliverer,
    classify_exception,
)
from wings.endpoints.registry import (
    DuplicateEndpointError,
    EndpointRegistry,
    UnknownEndpointError,
)

__all__ = [
    "Deliverer",
    "DeliveryAuthError",
    "DuplicateEndpointError",
    "Endpoint",
    "EndpointRegistry",
    "LinkError",
    "LocalFolderDeliverer",
    "UnknownEndpointError",
    "classify_exception",
]
