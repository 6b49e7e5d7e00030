"""Use cases — top-level entry points called by the CLI."""
