"""Wings CLI — Typer-based command-line interface."""
