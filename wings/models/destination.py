"""Destination and share-request models — the unit of queued work."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from wings.core.hasher import stable_int_hash


class Destination(BaseModel):
    """A specific addressable target within an endpoint.

    The pair ``(endpoint_id, destination_id)`` is the identity; e.g. a
    personal profile versus a page on the same social backend.
    """

    model_config = ConfigDict(frozen=True)

    endpoint_id: int
    destination_id: int

    @property
    def hash(self) -> int:
        """Stable grouping key, also used as the notification id."""
        return stable_int_hash(
            {"endpoint_id": self.endpoint_id, "destination_id": self.destination_id}
        )

    def __str__(self) -> str:
        return f"{self.endpoint_id}/{self.destination_id}"


class ShareState(str, Enum):
    """Lifecycle of a queued share request.

    ``PROCESSING`` is the claimed state set by checkout; rows in it are
    invisible to later checkouts.  ``SUCCESSFUL`` rows are deleted on the
    spot, so the value only appears transiently in reports.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a share request ended up FAILED.  Drives the retry policy."""

    AUTH = "auth"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


class ShareRequest(BaseModel):
    """One queued file-delivery job tied to a Destination."""

    model_config = ConfigDict(frozen=True)

    id: int
    file_path: str
    destination: Destination
    state: ShareState = ShareState.PENDING
    failure: FailureKind | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
