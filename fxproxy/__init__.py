"""Daily exchange-rates proxy with server and client side caching."""

__version__ = "0.1.0"
