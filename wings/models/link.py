"""Link state models — the per-endpoint account link state machine."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class LinkStatus(str, Enum):
    UNLINKED = "unlinked"
    LINK_IN_PROGRESS = "link_in_progress"
    LINKED = "linked"


class Unlinked(BaseModel):
    """No credential is held; share requests are refused."""

    model_config = ConfigDict(frozen=True)

    status: Literal[LinkStatus.UNLINKED] = LinkStatus.UNLINKED


class LinkInProgress(BaseModel):
    """A multi-step link flow is waiting on an external round trip.

    ``step`` is the id of the round trip that is outstanding; a
    continuation carrying any other step id is rejected.
    """

    model_config = ConfigDict(frozen=True)

    status: Literal[LinkStatus.LINK_IN_PROGRESS] = LinkStatus.LINK_IN_PROGRESS
    step: str


class Linked(BaseModel):
    """An account is linked and deliveries may proceed."""

    model_config = ConfigDict(frozen=True)

    status: Literal[LinkStatus.LINKED] = LinkStatus.LINKED
    account_name: str
    destination_id: int
    destination_description: str
    credential: str = Field(repr=False)


LinkState = Union[Unlinked, LinkInProgress, Linked]


class LinkInfo(BaseModel):
    """Read-only information about the current link."""

    model_config = ConfigDict(frozen=True)

    account_name: str
    destination_id: int
    destination_description: str


class LinkEvent(BaseModel):
    """Emitted on every link transition and once per endpoint on subscribe."""

    model_config = ConfigDict(frozen=True)

    endpoint_id: int
    endpoint_kind: str
    is_linked: bool


class LinkStepResult(BaseModel):
    """Outcome of one external link round trip, fed to ``complete_link_request``.

    ``data`` carries whatever the round trip produced (tokens, the account
    name, the chosen album...).  Data from every step is accumulated and
    validated as a whole when the final step completes.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    data: dict[str, str] = {}
    reason: str = ""

    @classmethod
    def success(cls, **data: str) -> LinkStepResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, reason: str = "") -> LinkStepResult:
        return cls(ok=False, reason=reason)
