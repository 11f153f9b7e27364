"""Deliverer protocol and exception classification.

A deliverer performs the actual vendor transfer for one file.  Wings
treats it as opaque: it receives the file, the destination, the persisted
credential and the backend settings captured at link time, and reports a
``DeliveryResult``.  It may also raise; every exception is mapped to a
``DeliveryOutcome`` by ``classify_exception`` at the endpoint boundary.

Timeouts are the deliverer's job.  ``WingsConfig.delivery_timeout_seconds`` is
the budget for one file: Wings hands it to the default deliverer, and
host-built deliverers should be constructed with it.  A deliverer that
gives up should raise ``TimeoutError`` (or return a transient failure).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from wings.models.delivery import DeliveryOutcome, DeliveryResult
from wings.models.destination import Destination

logger = logging.getLogger(__name__)

_COPY_CHUNK_BYTES = 1024 * 1024


class DeliveryAuthError(RuntimeError):
    """Raised by a deliverer when the backend rejects the credential."""


@runtime_checkable
class Deliverer(Protocol):
    """Protocol for vendor delivery backends.

    Any object with a matching ``deliver`` method satisfies this protocol.
    """

    def deliver(
        self,
        file_path: Path,
        destination: Destination,
        credential: str,
        *,
        settings: Mapping[str, str],
    ) -> DeliveryResult:
        """Transfer *file_path* to *destination*, blocking until done.

        Returns
        -------
        DeliveryResult
            The classified outcome, optionally with a vendor reference.
        """
        ...


def classify_exception(exc: BaseException) -> DeliveryOutcome:
    """Map a deliverer exception to a delivery outcome.

    - ``DeliveryAuthError`` -> AUTH_FAILURE
    - missing/unreadable file, malformed input -> PERMANENT_FAILURE
    - timeouts, connection problems, anything unexpected -> TRANSIENT_FAILURE
    """
    if isinstance(exc, DeliveryAuthError):
        return DeliveryOutcome.AUTH_FAILURE
    if isinstance(exc, (FileNotFoundError, IsADirectoryError, PermissionError, ValueError)):
        return DeliveryOutcome.PERMANENT_FAILURE
    return DeliveryOutcome.TRANSIENT_FAILURE


class LocalFolderDeliverer:
    """Delivers by copying into a local folder, one sub-folder per destination.

    Layout: {base_path}/{endpoint_id}-{destination_id}/{file name}

    Used as the default when no vendor deliverer is configured, and by the
    CLI for local dry runs.  An empty credential is rejected as an auth
    failure, the way a vendor rejects a revoked token.

    Parameters
    ----------
    base_path:
        Root directory for delivered files.
    timeout_seconds:
        Budget for one copy.  When it runs out mid-copy the partial file
        is removed and ``TimeoutError`` is raised.  None means no limit.
    """

    def __init__(self, base_path: Path | str, *, timeout_seconds: float | None = None) -> None:
        self._base = Path(base_path)
        self._timeout = timeout_seconds

    @property
    def base_path(self) -> Path:
        return self._base

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout

    def deliver(
        self,
        file_path: Path,
        destination: Destination,
        credential: str,
        *,
        settings: Mapping[str, str],
    ) -> DeliveryResult:
        if not credential:
            raise DeliveryAuthError("empty credential")

        target_dir = self._base / f"{destination.endpoint_id}-{destination.destination_id}"
        target_dir.mkdir(parents=True, exist_ok=True)
        target_file = target_dir / Path(file_path).name
        self._copy(Path(file_path), target_file)

        logger.debug("LocalFolderDeliverer: copied %s to %s", file_path, target_file)
        return DeliveryResult.success(reference=str(target_file.relative_to(self._base)))

    def _copy(self, source: Path, target: Path) -> None:
        deadline = None if self._timeout is None else time.monotonic() + self._timeout
        with open(source, "rb") as src, open(target, "wb") as dst:
            for chunk in iter(lambda: src.read(_COPY_CHUNK_BYTES), b""):
                if deadline is not None and time.monotonic() > deadline:
                    break
                dst.write(chunk)
            else:
                return
        target.unlink(missing_ok=True)
        raise TimeoutError(f"copy of {source.name} exceeded {self._timeout}s")
