"""Wings core — storage, link-state bus, dispatch, and notification aggregation."""
