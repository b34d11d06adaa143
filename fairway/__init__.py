"""Tee-time pricing, cancellation and settlement core."""

__version__ = "0.1.0"
