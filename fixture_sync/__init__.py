"""Scrape, cross-check and reconcile a team's fixtures into one event store."""

__version__ = "0.1.0"
