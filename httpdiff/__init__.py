"""Replay recorded requests against two HTTP endpoints and compare their JSON responses."""

__version__ = "0.1.0"