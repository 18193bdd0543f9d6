"""Agribridge marketplace core: review threads, carts and checkout."""

__version__ = "1.0.0"
