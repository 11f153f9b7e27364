"""Persistent share-request queue backed by SQLite.

Rows move ``pending -> processing -> (deleted | failed)``:

- ``checkout_share_requests`` claims every pending row of a destination in
  one ``BEGIN IMMEDIATE`` transaction, so no two callers ever receive the
  same row.  It is the boundary that prevents duplicate delivery.
- ``mark_successful`` deletes the row; success is never retried.
- ``mark_failed`` parks the row as failed with its failure kind.  Failed
  rows are never reclaimed by checkout; ``retry_failed`` re-queues the
  transient ones on explicit request.

Storage failures are logged and reported as the operation's no-op value
(``False``, ``[]``, ``0``) rather than raised.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from wings.core.database import StorageError, WingsDatabase
from wings.models.destination import Destination, FailureKind, ShareRequest, ShareState

logger = logging.getLogger(__name__)

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_SELECT_COLUMNS = "id, file_path, endpoint_id, destination_id, state, failure, created_at"


class ShareRequestStore:
    """The queue of pending, claimed, and failed share requests.

    Parameters
    ----------
    db:
        The shared Wings database.
    """

    def __init__(self, db: WingsDatabase) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def create_share_request(self, file_path: str, destination: Destination) -> bool:
        """Insert a pending share request.

        The file is not checked here; a missing file is detected at
        delivery time and fails that row permanently.

        Returns ``False`` only if the row could not be stored.
        """
        try:
            with self._db.transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO share_requests (file_path, endpoint_id, destination_id, state) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        str(file_path),
                        destination.endpoint_id,
                        destination.destination_id,
                        ShareState.PENDING.value,
                    ),
                )
                row_id = cursor.lastrowid
        except StorageError as exc:
            logger.error(
                "create_share_request failed for %s -> %s: %s", file_path, destination, exc
            )
            return False

        logger.debug("Queued share request %s: %s -> %s", row_id, file_path, destination)
        return True

    # ------------------------------------------------------------------
    # Checkout (claim)
    # ------------------------------------------------------------------

    def checkout_share_requests(self, destination: Destination) -> list[ShareRequest]:
        """Atomically claim every pending request for *destination*.

        Selecting and flipping to ``processing`` happen in the same
        transaction, so concurrent callers partition the pending rows.

        Returns the claimed requests ordered by id (enqueue order).
        """
        try:
            with self._db.transaction() as conn:
                rows = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM share_requests "
                    "WHERE endpoint_id = ? AND destination_id = ? AND state = ? "
                    "ORDER BY id ASC",
                    (
                        destination.endpoint_id,
                        destination.destination_id,
                        ShareState.PENDING.value,
                    ),
                ).fetchall()
                if rows:
                    conn.executemany(
                        f"UPDATE share_requests SET state = ?, updated_at = {_NOW} "
                        "WHERE id = ? AND state = ?",
                        [
                            (ShareState.PROCESSING.value, row[0], ShareState.PENDING.value)
                            for row in rows
                        ],
                    )
        except StorageError as exc:
            logger.error("checkout_share_requests failed for %s: %s", destination, exc)
            return []

        claimed = [
            self._row_to_request(row).model_copy(update={"state": ShareState.PROCESSING})
            for row in rows
        ]
        if claimed:
            logger.debug("Checked out %d share requests for %s", len(claimed), destination)
        return claimed

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def mark_successful(self, request_id: int) -> bool:
        """Record a successful delivery by removing the row."""
        try:
            with self._db.transaction() as conn:
                deleted = conn.execute(
                    "DELETE FROM share_requests WHERE id = ?", (request_id,)
                ).rowcount
        except StorageError as exc:
            logger.error("mark_successful failed for %s: %s", request_id, exc)
            return False
        return deleted > 0

    def mark_failed(
        self, request_id: int, failure: FailureKind = FailureKind.TRANSIENT
    ) -> bool:
        """Park the row as failed.  It is not reclaimed by later checkouts."""
        try:
            with self._db.transaction() as conn:
                updated = conn.execute(
                    f"UPDATE share_requests SET state = ?, failure = ?, updated_at = {_NOW} "
                    "WHERE id = ?",
                    (ShareState.FAILED.value, failure.value, request_id),
                ).rowcount
        except StorageError as exc:
            logger.error("mark_failed failed for %s: %s", request_id, exc)
            return False
        return updated > 0

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def delete_share_requests(self, destination: Destination) -> int:
        """Remove every row for *destination*, in any state.

        Joins the caller's transaction when there is one, which is how
        unlink stays atomic with the link-record flip.  Inside such a
        transaction a SQLite failure propagates so the whole unit rolls
        back.
        """
        try:
            with self._db.transaction() as conn:
                deleted = conn.execute(
                    "DELETE FROM share_requests WHERE endpoint_id = ? AND destination_id = ?",
                    (destination.endpoint_id, destination.destination_id),
                ).rowcount
        except StorageError as exc:
            logger.error("delete_share_requests failed for %s: %s", destination, exc)
            return 0
        if deleted:
            logger.info("Deleted %d share requests for %s", deleted, destination)
        return deleted

    def retry_failed(self, destination: Destination) -> int:
        """Re-queue transient failures for *destination*.

        Permanent and auth failures stay failed; auth failures are purged
        by the unlink they trigger anyway.

        Returns the number of rows moved back to pending.
        """
        try:
            with self._db.transaction() as conn:
                requeued = conn.execute(
                    f"UPDATE share_requests SET state = ?, failure = NULL, updated_at = {_NOW} "
                    "WHERE endpoint_id = ? AND destination_id = ? AND state = ? AND failure = ?",
                    (
                        ShareState.PENDING.value,
                        destination.endpoint_id,
                        destination.destination_id,
                        ShareState.FAILED.value,
                        FailureKind.TRANSIENT.value,
                    ),
                ).rowcount
        except StorageError as exc:
            logger.error("retry_failed failed for %s: %s", destination, exc)
            return 0
        if requeued:
            logger.info("Re-queued %d failed share requests for %s", requeued, destination)
        return requeued

    def fail_orphaned_claims(self) -> int:
        """Fail rows left in ``processing`` by a cycle that never finished.

        Called once at startup.  The rows may or may not have been
        delivered, so they are failed (transient) instead of re-queued;
        ``retry_failed`` can bring them back on request.
        """
        try:
            with self._db.transaction() as conn:
                orphaned = conn.execute(
                    f"UPDATE share_requests SET state = ?, failure = ?, updated_at = {_NOW} "
                    "WHERE state = ?",
                    (
                        ShareState.FAILED.value,
                        FailureKind.TRANSIENT.value,
                        ShareState.PROCESSING.value,
                    ),
                ).rowcount
        except StorageError as exc:
            logger.error("fail_orphaned_claims failed: %s", exc)
            return 0
        if orphaned:
            logger.warning("Failed %d orphaned share request claims", orphaned)
        return orphaned

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def list_share_requests(
        self,
        destination: Destination | None = None,
        state: ShareState | None = None,
    ) -> list[ShareRequest]:
        """Return share requests, optionally filtered, ordered by id."""
        clauses: list[str] = []
        params: list[object] = []
        if destination is not None:
            clauses.append("endpoint_id = ? AND destination_id = ?")
            params.extend([destination.endpoint_id, destination.destination_id])
        if state is not None:
            clauses.append("state = ?")
            params.append(state.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        try:
            with self._db.read() as conn:
                rows = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM share_requests{where} ORDER BY id ASC",
                    params,
                ).fetchall()
        except StorageError as exc:
            logger.error("list_share_requests failed: %s", exc)
            return []
        return [self._row_to_request(row) for row in rows]

    def count_by_state(self, destination: Destination) -> dict[ShareState, int]:
        """Return row counts per state for *destination* (zero-filled)."""
        counts = {state: 0 for state in ShareState}
        try:
            with self._db.read() as conn:
                rows = conn.execute(
                    "SELECT state, COUNT(*) FROM share_requests "
                    "WHERE endpoint_id = ? AND destination_id = ? GROUP BY state",
                    (destination.endpoint_id, destination.destination_id),
                ).fetchall()
        except StorageError as exc:
            logger.error("count_by_state failed for %s: %s", destination, exc)
            return counts
        for state, count in rows:
            counts[ShareState(state)] = count
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_request(row: tuple) -> ShareRequest:
        """Convert a SQLite row tuple to a ShareRequest."""
        (
            row_id,
            file_path,
            endpoint_id,
            destination_id,
            state,
            failure,
            created_at,
        ) = row
        return ShareRequest(
            id=row_id,
            file_path=file_path,
            destination=Destination(endpoint_id=endpoint_id, destination_id=destination_id),
            state=ShareState(state),
            failure=FailureKind(failure) if failure else None,
            created_at=_parse_timestamp(created_at),
        )


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
