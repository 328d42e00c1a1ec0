"""
Backlog Tracker.

- backend/: REST API, MCP tool layer, database, configuration
- cli/: HTTP client for the REST API used by the command line
"""
