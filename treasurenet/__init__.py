"""Treasure hunt game played over a raw packet socket with a framed stop-and-wait protocol."""

__version__ = "0.1.0"

__all__ = ["__version__"]