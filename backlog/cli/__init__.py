"""Command-line access to a running backlog server."""
