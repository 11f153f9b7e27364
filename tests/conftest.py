"""Shared test fixtures for Wings."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from wings.core.database import WingsDatabase
from wings.core.link_bus import LinkStateBus
from wings.core.link_store import LinkStore
from wings.core.share_store import ShareRequestStore
from wings.endpoints.base import Endpoint
from wings.models.delivery import DeliveryResult
from wings.models.destination import Destination
from wings.models.endpoints import DEFAULT_ENDPOINT_PROFILES, EndpointKind
from wings.models.link import LinkInProgress, LinkStepResult

# Complete link data per kind: enough to pass every settings check.
LINK_DATA: dict[EndpointKind, dict[str, str]] = {
    EndpointKind.FACEBOOK: {
        "account_name": "Ada",
        "credential": "fb-token",
        "album_name": "Wings",
        "album_graph_path": "/me/albums/1",
    },
    EndpointKind.DROPBOX: {
        "account_name": "ada@example.com",
        "credential": "db-token",
        "share_url": "https://db.tt/abc",
    },
    EndpointKind.CLOUD_PRINT: {
        "account_name": "ada",
        "credential": "cp-token",
        "printer_identifier": "printer-1",
        "printer_name": "Office",
    },
}


class StubDeliverer:
    """Deliverer double: records calls, answers per file name.

    ``outcomes`` maps a file name to a ``DeliveryResult`` to return or an
    exception to raise.  Unlisted files succeed with reference ``ref-<name>``.
    """

    def __init__(self, outcomes: Mapping[str, DeliveryResult | BaseException] | None = None):
        self.outcomes = dict(outcomes or {})
        self.calls: list[tuple[str, Destination, str]] = []
        self._lock = threading.Lock()

    def deliver(
        self,
        file_path: Path,
        destination: Destination,
        credential: str,
        *,
        settings: Mapping[str, str],
    ) -> DeliveryResult:
        with self._lock:
            self.calls.append((Path(file_path).name, destination, credential))
        outcome = self.outcomes.get(Path(file_path).name)
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is not None:
            return outcome
        return DeliveryResult.success(reference=f"ref-{Path(file_path).name}")

    @property
    def delivered_names(self) -> list[str]:
        return [name for name, _, _ in self.calls]


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def db(tmp_dir: Path) -> WingsDatabase:
    """Provide a fresh WingsDatabase backed by a temp SQLite file."""
    return WingsDatabase(tmp_dir / "wings.db")


@pytest.fixture
def share_store(db: WingsDatabase) -> ShareRequestStore:
    return ShareRequestStore(db)


@pytest.fixture
def link_store(db: WingsDatabase) -> LinkStore:
    return LinkStore(db)


@pytest.fixture
def bus() -> LinkStateBus:
    return LinkStateBus()


@pytest.fixture
def deliverer() -> StubDeliverer:
    """Provide a StubDeliverer where every file succeeds."""
    return StubDeliverer()


# ---------------------------------------------------------------------------
# Endpoint factories — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_endpoint(
    db: WingsDatabase,
    share_store: ShareRequestStore,
    link_store: LinkStore,
    bus: LinkStateBus,
    deliverer: StubDeliverer,
) -> Callable[..., Endpoint]:
    """Factory fixture: build an Endpoint on the shared test stores."""

    def _factory(
        kind: EndpointKind = EndpointKind.DROPBOX,
        deliverer_override: Any = None,
    ) -> Endpoint:
        return Endpoint(
            DEFAULT_ENDPOINT_PROFILES[kind],
            db=db,
            share_store=share_store,
            link_store=link_store,
            bus=bus,
            deliverer=deliverer_override or deliverer,
        )

    return _factory


@pytest.fixture
def link_endpoint() -> Callable[..., None]:
    """Factory fixture: walk an endpoint's whole link flow successfully.

    The first step carries all link data; later steps are acknowledged.
    Keyword overrides are merged into the default data for the kind.
    """

    def _link(endpoint: Endpoint, **overrides: str) -> None:
        data = {**LINK_DATA[endpoint.kind], **overrides}
        step = endpoint.start_link_request()
        result = LinkStepResult.success(**data)
        while step is not None:
            state = endpoint.complete_link_request(step, result)
            result = LinkStepResult.success()
            step = state.step if isinstance(state, LinkInProgress) else None

    return _link


@pytest.fixture
def make_files(tmp_dir: Path) -> Callable[..., list[Path]]:
    """Factory fixture: create small files with the given names."""

    def _factory(*names: str) -> list[Path]:
        folder = tmp_dir / "photos"
        folder.mkdir(exist_ok=True)
        paths = []
        for name in names:
            path = folder / name
            path.write_bytes(f"image bytes of {name}".encode())
            paths.append(path)
        return paths

    return _factory


@pytest.fixture
def make_deliverer() -> Callable[..., StubDeliverer]:
    """Factory fixture: build a StubDeliverer with per-file outcomes."""

    def _factory(
        outcomes: Mapping[str, DeliveryResult | BaseException] | None = None,
    ) -> StubDeliverer:
        return StubDeliverer(outcomes)

    return _factory


@pytest.fixture
def link_data() -> dict[EndpointKind, dict[str, str]]:
    """Provide a copy of the complete link data per kind."""
    return {kind: dict(data) for kind, data in LINK_DATA.items()}
