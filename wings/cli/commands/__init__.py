"""Wings CLI commands."""
