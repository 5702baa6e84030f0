"""Bulk tabular import engine for multi-tenant institution records."""

__version__ = "0.1.0"
