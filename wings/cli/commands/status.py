"""``wings status`` — link state and queue counts per endpoint."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from wings.cli.commands.common import open_wings, outbox_option, storage_option
from wings.endpoints.base import Endpoint
from wings.models.destination import ShareState
from wings.models.link import LinkInProgress, Linked

console = Console()


def _describe_state(endpoint: Endpoint) -> tuple[str, str]:
    state = endpoint.link_state()
    if isinstance(state, Linked):
        return "[green]linked[/green]", state.destination_description
    if isinstance(state, LinkInProgress):
        return "[yellow]linking[/yellow]", f"awaiting step {state.step!r}"
    return "[dim]unlinked[/dim]", ""


def status_cmd(
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Show every endpoint's link state and its queue counts."""
    with open_wings(storage, outbox) as wings:
        table = Table(title="Wings Endpoints", show_header=True, header_style="bold cyan")
        table.add_column("Endpoint", style="cyan", no_wrap=True)
        table.add_column("Id", justify="right")
        table.add_column("Link", justify="center")
        table.add_column("Destination")
        table.add_column("Pending", justify="right")
        table.add_column("Processing", justify="right")
        table.add_column("Failed", justify="right")

        for endpoint in wings.get_endpoints():
            link, destination = _describe_state(endpoint)
            counts = {state: 0 for state in ShareState}
            for request in wings.list_share_requests(endpoint.kind):
                counts[request.state] += 1
            table.add_row(
                endpoint.kind.value,
                str(endpoint.endpoint_id),
                link,
                destination,
                str(counts[ShareState.PENDING]),
                str(counts[ShareState.PROCESSING]),
                str(counts[ShareState.FAILED]),
            )

        console.print(table)
