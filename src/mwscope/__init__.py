"""Maintenance window scoping: selector compilation, entity fetching, host resolution and auto-tag lifecycle."""

__version__ = "0.1.0"
