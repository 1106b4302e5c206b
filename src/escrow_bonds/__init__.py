"""Escrow bonds — two-party escrow with a single arbiter and a platform fee."""

__version__ = "0.1.0"
