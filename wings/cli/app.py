"""Main Typer application — imports and registers all CLI commands.

Entry point: ``wings`` (configured via pyproject.toml project.scripts).

Commands: status, link, unlink, share, flush, retry, queue.
"""

from __future__ import annotations

import logging

import typer

from wings.cli.commands.link import link_cmd, unlink_cmd
from wings.cli.commands.queue import queue_cmd, retry_cmd
from wings.cli.commands.share import flush_cmd, share_cmd
from wings.cli.commands.status import status_cmd

app = typer.Typer(
    name="wings",
    help="Wings: queue files for sharing to linked Facebook, Dropbox and Cloud Print accounts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="status", help="Show every endpoint's link state and queue.")(status_cmd)
app.command(name="link", help="Link an account to an endpoint.")(link_cmd)
app.command(name="unlink", help="Unlink an endpoint and drop its queue.")(unlink_cmd)
app.command(name="share", help="Queue a file for a linked endpoint.")(share_cmd)
app.command(name="flush", help="Process every pending share request now.")(flush_cmd)
app.command(name="retry", help="Re-queue an endpoint's transient failures.")(retry_cmd)
app.command(name="queue", help="List queued share requests.")(queue_cmd)


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    app()


if __name__ == "__main__":
    main()
