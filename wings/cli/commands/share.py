"""``wings share`` / ``wings flush`` — queue files and deliver them."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from wings.cli.commands.common import open_wings, outbox_option, storage_option
from wings.core.notifications import merge_notifications
from wings.models.endpoints import EndpointKind
from wings.models.notifications import ShareNotification

console = Console()


class _CollectingPresenter:
    """Keeps every notification presented while the command runs."""

    def __init__(self) -> None:
        self.presented: list[ShareNotification] = []

    def present(self, notification: ShareNotification) -> None:
        self.presented.append(notification)


def _print_notifications(notifications: list[ShareNotification]) -> None:
    if not notifications:
        console.print("[dim]Nothing delivered.[/dim]")
        return
    table = Table(title="Delivered", header_style="bold cyan")
    table.add_column("Notification", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Message")
    table.add_column("Shared", justify="right")
    for notification in notifications:
        table.add_row(
            str(notification.id),
            notification.title,
            notification.message,
            str(notification.success_count),
        )
    console.print(table)


def share_cmd(
    files: list[Path] = typer.Argument(..., help="Files to share."),
    to: EndpointKind = typer.Option(..., "--to", "-t", help="Endpoint to share to."),
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Queue one or more files for a linked endpoint and deliver them.

    Exits with status 1 if any file could not be queued (unknown or
    unlinked endpoint, or a storage failure).
    """
    presenter = _CollectingPresenter()
    queued = 0
    with open_wings(storage, outbox, presenter=presenter) as wings:
        for path in files:
            if wings.share(path, to):
                queued += 1
                console.print(f"Queued [cyan]{path}[/cyan] for {to.value}")
            else:
                console.print(
                    f"[red]Could not queue {path} for {to.value} (not linked or storage failure)[/red]"
                )
        if queued:
            # Deliver before printing; the background cycle may still be running.
            wings.flush()

    if queued:
        _print_notifications(merge_notifications([presenter.presented]))
    if queued < len(files):
        raise typer.Exit(code=1)


def flush_cmd(
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Deliver every pending share request of every linked endpoint."""
    with open_wings(storage, outbox) as wings:
        report = wings.flush()
    if report is None:
        console.print("[yellow]A processing cycle is already running.[/yellow]")
        raise typer.Exit(code=1)

    console.print(
        f"Cycle [cyan]{report.cycle_id}[/cyan] processed "
        f"{len(report.processed_endpoints)} endpoints"
    )
    _print_notifications(report.notifications)
    for kind in report.failed_endpoints:
        console.print(f"[red]Endpoint {kind} failed during processing; see the log.[/red]")
