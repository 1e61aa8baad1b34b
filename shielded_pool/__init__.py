"""Cryptographic core of a shielded token pool."""

__version__ = "0.1.0"
