"""Command implementations behind the reportgov CLI."""
