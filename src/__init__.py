# src/__init__.py — v1
"""vinenrich: background enrichment of wine records via text generation."""

from vinenrich.version import __version__

__all__ = ["__version__"]
