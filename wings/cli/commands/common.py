"""Shared options and the ``Wings`` factory used by every command."""

from __future__ import annotations

from pathlib import Path

import typer

from wings.config import WingsConfig, configure_logging
from wings.core.notifications import NotificationPresenter
from wings.core.wings import Wings


def storage_option() -> Path:
    return typer.Option(
        None,
        "--storage",
        "-s",
        help="Path to the Wings SQLite database (default: WINGS_STORAGE_PATH).",
    )


def outbox_option() -> Path:
    return typer.Option(
        None,
        "--outbox",
        "-o",
        help="Folder that local deliveries are copied into (default: WINGS_OUTBOX_PATH).",
    )


def open_wings(
    storage: Path | None,
    outbox: Path | None,
    *,
    presenter: NotificationPresenter | None = None,
) -> Wings:
    """Build a ``Wings`` from the environment, with command-line overrides."""
    overrides: dict[str, Path] = {}
    if storage is not None:
        overrides["storage_path"] = storage
    if outbox is not None:
        overrides["outbox_path"] = outbox
    config = WingsConfig(**overrides)
    configure_logging(config)
    return Wings(config, presenter=presenter)
