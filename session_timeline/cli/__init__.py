"""Command-line interface for session-timeline."""
