"""Command line interface for relstore."""
