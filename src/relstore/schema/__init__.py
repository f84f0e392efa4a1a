"""Schema management for relstore."""

from relstore.schema.schema import Schema

__all__ = ["Schema"]
