"""restorectl: command-line client for a remote PostgreSQL restore service."""
