"""``wings link`` / ``wings unlink`` — manage endpoint account links.

The CLI has no browser round trip, so ``link`` walks the whole link flow
in one go: the first step carries every value supplied on the command
line and each remaining step is acknowledged as completed.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from wings.cli.commands.common import open_wings, outbox_option, storage_option
from wings.endpoints.base import LinkError
from wings.models.endpoints import EndpointKind
from wings.models.link import LinkInProgress, Linked, LinkStepResult

console = Console()


def _parse_settings(pairs: list[str]) -> dict[str, str]:
    settings: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--setting")
        settings[key.strip()] = value
    return settings


def link_cmd(
    kind: EndpointKind = typer.Argument(..., help="Endpoint to link."),
    account: str = typer.Option(..., "--account", "-a", help="Account name to link."),
    credential: str = typer.Option(..., "--credential", "-c", help="Access token for the account."),
    destination_id: int = typer.Option(
        None, "--destination-id", "-d", help="Destination id (default: the endpoint's default)."
    ),
    setting: list[str] = typer.Option(
        None, "--setting", "-S", help="Backend setting as KEY=VALUE; repeatable."
    ),
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Link an account, replacing any existing link of the endpoint."""
    data = _parse_settings(setting or [])
    data["account_name"] = account
    data["credential"] = credential
    if destination_id is not None:
        data["destination_id"] = str(destination_id)

    errors: list[LinkError] = []
    with open_wings(storage, outbox) as wings:
        wings.subscribe_link_errors(errors.append)
        endpoint = wings.get_endpoint(kind)

        step = endpoint.start_link_request()
        result = LinkStepResult.success(**data)
        while step is not None:
            state = endpoint.complete_link_request(step, result)
            result = LinkStepResult.success()
            step = state.step if isinstance(state, LinkInProgress) else None

        state = endpoint.link_state()
        if not isinstance(state, Linked):
            reason = errors[-1].reason if errors else "link flow did not complete"
            console.print(f"[red]Linking {kind.value} failed:[/red] {reason}")
            raise typer.Exit(code=1)

        console.print(
            Panel(
                "\n".join([
                    f"[bold green]{endpoint.display_name} linked.[/bold green]",
                    f"Account: [cyan]{state.account_name}[/cyan]",
                    f"Destination: {state.destination_description}",
                ]),
                title="[bold]Wings[/bold]",
                border_style="green",
            )
        )


def unlink_cmd(
    kind: EndpointKind = typer.Argument(..., help="Endpoint to unlink."),
    storage: Path = storage_option(),
    outbox: Path = outbox_option(),
) -> None:
    """Unlink an endpoint.  Every queued request for it is dropped."""
    with open_wings(storage, outbox) as wings:
        wings.get_endpoint(kind).unlink()
    console.print(f"[green]{kind.value} unlinked.[/green]")
