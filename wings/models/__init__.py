"""Wings data models — all Pydantic v2, all frozen (immutable)."""

from wings.models.delivery import DeliveryOutcome, DeliveryResult
from wings.models.destination import Destination, FailureKind, ShareRequest, ShareState
from wings.models.endpoints import (
    DEFAULT_ENDPOINT_PROFILES,
    EndpointKind,
    EndpointProfile,
    NotificationTemplates,
)
from wings.models.link import (
    LinkEvent,
    LinkInfo,
    LinkInProgress,
    Linked,
    LinkState,
    LinkStatus,
    LinkStepResult,
    Unlinked,
)
from wings.models.notifications import CycleReport, ShareNotification

__all__ = [
    # destination
    "Destination",
    "FailureKind",
    "ShareRequest",
    "ShareState",
    # delivery
    "DeliveryOutcome",
    "DeliveryResult",
    # endpoints
    "DEFAULT_ENDPOINT_PROFILES",
    "EndpointKind",
    "EndpointProfile",
    "NotificationTemplates",
    # link
    "LinkEvent",
    "LinkInfo",
    "LinkInProgress",
    "Linked",
    "LinkState",
    "LinkStatus",
    "LinkStepResult",
    "Unlinked",
    # notifications
    "CycleReport",
    "ShareNotification",
]
