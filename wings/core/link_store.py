"""Persisted per-endpoint link records.

One row per endpoint id in ``endpoint_links``.  The row holds both the
linked account (credential, description, backend settings) and the state
of an in-flight link flow (the expected step id plus the data gathered
by earlier steps), so a flow survives a process restart.

Write methods join an enclosing ``WingsDatabase.transaction()`` and raise
``StorageError`` on failure; callers decide how to degrade.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ConfigDict, Field

from wings.core.database import StorageError, WingsDatabase
from wings.core.hasher import canonical_json_bytes
from wings.models.link import LinkInfo, LinkInProgress, Linked, LinkState, Unlinked

logger = logging.getLogger(__name__)

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


class LinkRecord(BaseModel):
    """Row image of ``endpoint_links``."""

    model_config = ConfigDict(frozen=True)

    endpoint_id: int
    linked: bool = False
    account_name: str | None = None
    destination_id: int | None = None
    destination_description: str | None = None
    credential: str | None = Field(default=None, repr=False)
    settings: dict[str, str] = {}
    link_step: str | None = None
    pending: dict[str, str] = Field(default_factory=dict, repr=False)

    @property
    def state(self) -> LinkState:
        if self.link_step is not None:
            return LinkInProgress(step=self.link_step)
        if self.linked and self.account_name and self.credential is not None:
            return Linked(
                account_name=self.account_name,
                destination_id=self.destination_id or 0,
                destination_description=self.destination_description or "",
                credential=self.credential,
            )
        return Unlinked()

    @property
    def link_info(self) -> LinkInfo | None:
        state = self.state
        if isinstance(state, Linked):
            return LinkInfo(
                account_name=state.account_name,
                destination_id=state.destination_id,
                destination_description=state.destination_description,
            )
        return None


class LinkStore:
    """Reads and writes ``endpoint_links`` rows.

    Parameters
    ----------
    db:
        The shared Wings database.
    """

    def __init__(self, db: WingsDatabase) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, endpoint_id: int) -> LinkRecord:
        """Return the record for *endpoint_id*; unlinked if absent or unreadable."""
        try:
            with self._db.read() as conn:
                row = conn.execute(
                    "SELECT endpoint_id, linked, account_name, destination_id, "
                    "destination_description, credential, settings_json, link_step, "
                    "pending_json FROM endpoint_links WHERE endpoint_id = ?",
                    (endpoint_id,),
                ).fetchone()
        except StorageError as exc:
            logger.error("Reading link record %d failed: %s", endpoint_id, exc)
            return LinkRecord(endpoint_id=endpoint_id)
        if row is None:
            return LinkRecord(endpoint_id=endpoint_id)
        return self._row_to_record(row)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def begin_flow(self, endpoint_id: int, step: str) -> None:
        """Start a link flow expecting *step*; drops any earlier link data."""
        self._upsert(
            endpoint_id,
            linked=False,
            account_name=None,
            destination_id=None,
            destination_description=None,
            credential=None,
            settings={},
            link_step=step,
            pending={},
        )

    def advance_flow(self, endpoint_id: int, step: str, pending: dict[str, str]) -> None:
        """Record the next expected step and the data gathered so far."""
        with self._db.transaction() as conn:
            conn.execute(
                f"UPDATE endpoint_links SET link_step = ?, pending_json = ?, updated_at = {_NOW} "
                "WHERE endpoint_id = ?",
                (step, _dumps(pending), endpoint_id),
            )

    def store_link(
        self,
        endpoint_id: int,
        *,
        account_name: str,
        destination_id: int,
        destination_description: str,
        credential: str,
        settings: dict[str, str],
    ) -> None:
        """Persist a completed link and end the flow."""
        self._upsert(
            endpoint_id,
            linked=True,
            account_name=account_name,
            destination_id=destination_id,
            destination_description=destination_description,
            credential=credential,
            settings=settings,
            link_step=None,
            pending={},
        )

    def clear(self, endpoint_id: int) -> None:
        """Reset the record to unlinked, removing credential and settings."""
        self._upsert(
            endpoint_id,
            linked=False,
            account_name=None,
            destination_id=None,
            destination_description=None,
            credential=None,
            settings={},
            link_step=None,
            pending={},
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _upsert(
        self,
        endpoint_id: int,
        *,
        linked: bool,
        account_name: str | None,
        destination_id: int | None,
        destination_description: str | None,
        credential: str | None,
        settings: dict[str, str],
        link_step: str | None,
        pending: dict[str, str],
    ) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO endpoint_links
                    (endpoint_id, linked, account_name, destination_id,
                     destination_description, credential, settings_json,
                     link_step, pending_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(endpoint_id) DO UPDATE SET
                    linked = excluded.linked,
                    account_name = excluded.account_name,
                    destination_id = excluded.destination_id,
                    destination_description = excluded.destination_description,
                    credential = excluded.credential,
                    settings_json = excluded.settings_json,
                    link_step = excluded.link_step,
                    pending_json = excluded.pending_json,
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                """,
                (
                    endpoint_id,
                    int(linked),
                    account_name,
                    destination_id,
                    destination_description,
                    credential,
                    _dumps(settings),
                    link_step,
                    _dumps(pending),
                ),
            )

    @staticmethod
    def _row_to_record(row: tuple) -> LinkRecord:
        (
            endpoint_id,
            linked,
            account_name,
            destination_id,
            destination_description,
            credential,
            settings_json,
            link_step,
            pending_json,
        ) = row
        return LinkRecord(
            endpoint_id=endpoint_id,
            linked=bool(linked),
            account_name=account_name,
            destination_id=destination_id,
            destination_description=destination_description,
            credential=credential,
            settings=json.loads(settings_json or "{}"),
            link_step=link_step,
            pending=json.loads(pending_json or "{}"),
        )


def _dumps(data: dict[str, str]) -> str:
    return canonical_json_bytes(data).decode("utf-8")
