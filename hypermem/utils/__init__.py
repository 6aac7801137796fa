"""Utility functions for hypermem."""

from hypermem.utils.logging import configure_logging

__all__ = ["configure_logging"]
