"""Unit tests for the CLI — Typer command registration and basic behavior.

Exercises every command against a temp database via typer.testing.CliRunner.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from wings.cli.app import app
from wings.core.database import WingsDatabase
from wings.core.share_store import ShareRequestStore
from wings.models.destination import Destination, FailureKind

runner = CliRunner()


@pytest.fixture
def paths(tmp_dir: Path) -> list[str]:
    """Storage and outbox options pointing into the temp directory."""
    return [
        "--storage", str(tmp_dir / "cli.db"),
        "--outbox", str(tmp_dir / "outbox"),
    ]


def _link_dropbox(paths: list[str]):
    return runner.invoke(
        app,
        [
            "link", "dropbox",
            "--account", "ada@example.com",
            "--credential", "db-token",
            "--setting", "share_url=https://db.tt/abc",
            *paths,
        ],
    )


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("status", "link", "unlink", "share", "flush", "retry", "queue"):
            assert name in result.output

    @pytest.mark.parametrize(
        "command", ["status", "link", "unlink", "share", "flush", "retry", "queue"]
    )
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: command behavior
# ---------------------------------------------------------------------------


class TestCommands:
    def test_status_on_fresh_database(self, paths):
        result = runner.invoke(app, ["status", *paths])
        assert result.exit_code == 0
        assert "facebook" in result.output
        assert "dropbox" in result.output

    def test_link_then_status(self, paths):
        result = _link_dropbox(paths)
        assert result.exit_code == 0, result.output
        assert "Dropbox linked" in result.output

        status = runner.invoke(app, ["status", *paths])
        assert status.exit_code == 0

    def test_link_with_missing_setting_fails(self, paths):
        result = runner.invoke(
            app,
            ["link", "dropbox", "--account", "ada", "--credential", "t", *paths],
        )
        assert result.exit_code == 1
        assert "share_url" in result.output

    def test_link_rejects_malformed_setting(self, paths):
        result = runner.invoke(
            app,
            ["link", "dropbox", "--account", "ada", "--credential", "t",
             "--setting", "share_url", *paths],
        )
        assert result.exit_code != 0

    def test_share_delivers_into_outbox(self, paths, tmp_dir, make_files):
        assert _link_dropbox(paths).exit_code == 0
        (photo,) = make_files("beach.jpg")

        result = runner.invoke(app, ["share", str(photo), "--to", "dropbox", *paths])

        assert result.exit_code == 0, result.output
        assert (tmp_dir / "outbox" / "dropbox" / "1-0" / "beach.jpg").exists()
        queue = runner.invoke(app, ["queue", *paths])
        assert "empty" in queue.output

    def test_share_to_unlinked_endpoint_fails(self, paths, make_files):
        (photo,) = make_files("beach.jpg")
        result = runner.invoke(app, ["share", str(photo), "--to", "facebook", *paths])
        assert result.exit_code == 1
        assert "Could not queue" in result.output

    def test_unlink(self, paths):
        assert _link_dropbox(paths).exit_code == 0
        result = runner.invoke(app, ["unlink", "dropbox", *paths])
        assert result.exit_code == 0
        assert "unlinked" in result.output

    def test_flush_with_nothing_queued(self, paths):
        result = runner.invoke(app, ["flush", *paths])
        assert result.exit_code == 0
        assert "Nothing delivered" in result.output

    def test_queue_and_retry(self, paths, tmp_dir, make_files):
        assert _link_dropbox(paths).exit_code == 0
        (photo,) = make_files("beach.jpg")
        store = ShareRequestStore(WingsDatabase(tmp_dir / "cli.db"))
        destination = Destination(endpoint_id=1, destination_id=0)
        store.create_share_request(str(photo), destination)
        (request,) = store.checkout_share_requests(destination)
        store.mark_failed(request.id, FailureKind.TRANSIENT)

        queue = runner.invoke(app, ["queue", "--state", "failed", *paths])
        assert queue.exit_code == 0
        assert "transient" in queue.output

        retry = runner.invoke(app, ["retry", "dropbox", *paths])
        assert retry.exit_code == 0
        assert "Re-queued 1" in retry.output
        assert store.list_share_requests() == []
        assert (tmp_dir / "outbox" / "dropbox" / "1-0" / "beach.jpg").exists()
