"""Koinos command line client."""

__version__ = "2.0.0"

__all__ = ["__version__"]
