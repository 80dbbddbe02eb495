"""GitHub organization metrics collector."""

__version__ = "1.0.0"
