"""Ledger adapters implementing the ChainStateReader port."""

from .in_memory import InMemoryLedger

__all__ = ["InMemoryLedger"]
