"""Command surface and HTTP API."""
