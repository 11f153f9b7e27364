"""SQLite storage shared by the share-request and link stores.

Design:
- One file, WAL journal mode for concurrent readers.
- One short-lived connection per transaction (``check_same_thread=False``
  is never needed because connections never cross threads).
- Every write path runs inside ``BEGIN IMMEDIATE`` so the write lock is
  taken up front; a checkout cannot interleave with another checkout.
- ``transaction()`` is re-entrant per thread: a nested call joins the
  outer transaction.  This is how ``unlink`` clears the link record and
  the queued rows atomically across both tables.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_SHARE_REQUESTS = """
CREATE TABLE IF NOT EXISTS share_requests (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    file_path       TEXT NOT NULL,
    endpoint_id     INTEGER NOT NULL,
    destination_id  INTEGER NOT NULL,
    state           TEXT NOT NULL DEFAULT 'pending',
    failure         TEXT,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_IDX_DESTINATION_STATE = """
CREATE INDEX IF NOT EXISTS idx_destination_state
    ON share_requests(endpoint_id, destination_id, state, id);
"""

_CREATE_ENDPOINT_LINKS = """
CREATE TABLE IF NOT EXISTS endpoint_links (
    endpoint_id             INTEGER PRIMARY KEY,
    linked                  INTEGER NOT NULL DEFAULT 0,
    account_name            TEXT,
    destination_id          INTEGER,
    destination_description TEXT,
    credential              TEXT,
    settings_json           TEXT NOT NULL DEFAULT '{}',
    link_step               TEXT,
    pending_json            TEXT NOT NULL DEFAULT '{}',
    updated_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""


class StorageError(RuntimeError):
    """Raised when the underlying SQLite database fails."""


class WingsDatabase:
    """Connection and transaction management for the Wings SQLite file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    busy_timeout_seconds:
        How long a writer waits for another writer's lock before failing.
    """

    def __init__(self, db_path: Path, *, busy_timeout_seconds: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._busy_timeout = busy_timeout_seconds
        self._local = threading.local()
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below.
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self._busy_timeout,
            isolation_level=None,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute(_CREATE_SHARE_REQUESTS)
                conn.execute(_CREATE_IDX_DESTINATION_STATE)
                conn.execute(_CREATE_ENDPOINT_LINKS)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot initialize {self._db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the body in one ``BEGIN IMMEDIATE`` transaction.

        Nested use on the same thread joins the outermost transaction;
        only the outermost block commits or rolls back.

        Raises
        ------
        StorageError
            If SQLite fails at any point.  The transaction is rolled back.
        """
        conn: sqlite3.Connection | None = getattr(self._local, "conn", None)
        if conn is not None:
            self._local.depth += 1
            try:
                yield conn
            finally:
                self._local.depth -= 1
            return

        try:
            conn = self._connect()
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open transaction: {exc}") from exc

        self._local.conn = conn
        self._local.depth = 1
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback(conn)
            raise StorageError(str(exc)) from exc
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._local.conn = None
            self._local.depth = 0
            conn.close()

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for read-only queries.

        Inside a transaction on this thread, the transaction's connection
        is reused so reads observe uncommitted writes of the same unit.
        """
        conn: sqlite3.Connection | None = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open {self._db_path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("WingsDatabase: rollback failed")

    def __repr__(self) -> str:
        return f"WingsDatabase(path={str(self._db_path)!r})"
