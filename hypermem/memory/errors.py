"""Exceptions raised by the hypergraph memory."""


class HypergraphError(Exception):
    """Base error for hypergraph store and scheduler failures."""
    pass


class InvalidMemoryError(HypergraphError, ValueError):
    """A memory write was rejected before touching the database."""
    pass


class TenantConfigError(HypergraphError):
    """Per-guild decay configuration could not be resolved."""
    pass
