"""Subscription resolution and seat-based organization billing."""

__version__ = "0.1.0"
