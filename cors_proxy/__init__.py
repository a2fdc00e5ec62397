"""Minimal CORS-annotating reverse proxy for a single upstream host."""

__version__ = "0.1.0"
