"""``wings queue`` / ``wings retry`` — inspect and re-queue share requests."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from wings.cli.commands.common import open_wings, outbox_option, storage_option
from wings.models.destination import ShareState
from wings.models.endpoints import EndpointKind

console = Console()

_STATE_STYLES = {
    ShareState.PENDING: "yellow",
    ShareState.PROCESSING: "cyan",
    ShareState.FAILED: "red",
}


def queue_cmd(
    kind: EndpointKind = typer.Option(None, "--kind", "-k", help="Only this endpoint."),
    state: ShareState = typer.Option(None, "--state", help="Only rows in this state."),
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """List queued share requests, oldest first."""
    with open_wings(storage, outbox) as wings:
        requests = wings.list_share_requests(kind, state)
        names = {endpoint.endpoint_id: endpoint.kind.value for endpoint in wings.get_endpoints()}

    if not requests:
        console.print("[dim]The queue is empty.[/dim]")
        return

    table = Table(title="Share Requests", header_style="bold cyan")
    table.add_column("Id", justify="right", no_wrap=True)
    table.add_column("Endpoint", style="cyan", no_wrap=True)
    table.add_column("Dest", justify="right", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Failure", no_wrap=True)
    table.add_column("File", overflow="fold")
    for request in requests:
        style = _STATE_STYLES.get(request.state, "white")
        table.add_row(
            str(request.id),
            names.get(request.destination.endpoint_id, str(request.destination.endpoint_id)),
            str(request.destination.destination_id),
            f"[{style}]{request.state.value}[/{style}]",
            request.failure.value if request.failure else "",
            request.file_path,
        )
    console.print(table)


def retry_cmd(
    kind: EndpointKind = typer.Argument(..., help="Endpoint whose transient failures to retry."),
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Re-queue the transient failures of an endpoint and deliver them."""
    with open_wings(storage, outbox) as wings:
        requeued = wings.retry_failed(kind)
        if requeued:
            wings.flush()
    console.print(f"Re-queued {requeued} share requests for {kind.value}")
