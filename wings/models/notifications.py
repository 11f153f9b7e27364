"""Notification and processing-cycle report models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from wings.models.destination import Destination


class ShareNotification(BaseModel):
    """User-facing summary of one destination's successes in one cycle.

    ``id`` is the destination hash, so a presentation layer that keys on it
    updates in place instead of stacking a new notification every cycle.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    message: str
    ticker: str
    launch_target: str = ""
    success_count: int
    destination: Destination


class CycleReport(BaseModel):
    """Summary of one dispatcher processing cycle."""

    model_config = ConfigDict(frozen=True)

    cycle_id: str = Field(default_factory=lambda: f"cyc-{uuid.uuid4().hex[:12]}")
    reason: str = ""
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime | None = None
    processed_endpoints: list[str] = []
    failed_endpoints: list[str] = []
    notifications: list[ShareNotification] = []

    @property
    def total_successes(self) -> int:
        return sum(n.success_count for n in self.notifications)
