"""Delivery outcome models — the per-row result taxonomy."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from wings.models.destination import FailureKind


class DeliveryOutcome(str, Enum):
    """Classification of a single delivery attempt.

    Every attempt maps to exactly one of these; nothing escapes the
    endpoint unclassified.
    """

    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"

    @property
    def failure_kind(self) -> FailureKind | None:
        """The FailureKind recorded on the row, or None for SUCCESS."""
        return _FAILURE_KINDS.get(self)


_FAILURE_KINDS: dict[DeliveryOutcome, FailureKind] = {
    DeliveryOutcome.AUTH_FAILURE: FailureKind.AUTH,
    DeliveryOutcome.TRANSIENT_FAILURE: FailureKind.TRANSIENT,
    DeliveryOutcome.PERMANENT_FAILURE: FailureKind.PERMANENT,
}


class DeliveryResult(BaseModel):
    """What a deliverer reports back for one file.

    ``reference`` is an optional vendor-side id of the delivered item
    (e.g. a photo id) used to build a notification launch target.
    """

    model_config = ConfigDict(frozen=True)

    outcome: DeliveryOutcome
    detail: str = ""
    reference: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == DeliveryOutcome.SUCCESS

    @classmethod
    def success(cls, reference: str | None = None, detail: str = "") -> DeliveryResult:
        return cls(outcome=DeliveryOutcome.SUCCESS, reference=reference, detail=detail)

    @classmethod
    def auth_failure(cls, detail: str = "") -> DeliveryResult:
        return cls(outcome=DeliveryOutcome.AUTH_FAILURE, detail=detail)

    @classmethod
    def transient_failure(cls, detail: str = "") -> DeliveryResult:
        return cls(outcome=DeliveryOutcome.TRANSIENT_FAILURE, detail=detail)

    @classmethod
    def permanent_failure(cls, detail: str = "") -> DeliveryResult:
        return cls(outcome=DeliveryOutcome.PERMANENT_FAILURE, detail=detail)
