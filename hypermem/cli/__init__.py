"""CLI module for hypermem."""
