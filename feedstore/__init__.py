"""Persistence layer for a feed-aggregation service."""

__version__ = "0.1.0"
