"""Public API for the shielded pool engine.

Hashing, commitments and the Merkle engine are imported eagerly. The Groth16
verifier and the disclosure workflow pull in the pairing library and are
loaded on first access.
"""
from __future__ import annotations

from importlib import import_module

from .adapters import InMemoryLedger
from .commitments import CommitmentService, Note, NullifierService, hash_owner_pubkey
from .config import EngineConfig, load_config
from .field import ONE, ZERO, FieldElement
from .merkle import MerkleTreeService, ZeroHashCache
from .poseidon import PoseidonHasher, get_hasher, resolve_backend_name
from .proof_service import (
    ChainStateReader,
    MerkleProofService,
    NullifierQueryService,
    PoolQueryService,
)
from .types import MerkleProof, PoolStatistics, TreeDepth, TreeInfo

__all__ = [
    "CommitmentService",
    "Note",
    "NullifierService",
    "hash_owner_pubkey",
    "EngineConfig",
    "load_config",
    "ONE",
    "ZERO",
    "FieldElement",
    "MerkleTreeService",
    "ZeroHashCache",
    "PoseidonHasher",
    "get_hasher",
    "resolve_backend_name",
    "ChainStateReader",
    "MerkleProofService",
    "NullifierQueryService",
    "PoolQueryService",
    "MerkleProof",
    "PoolStatistics",
    "TreeDepth",
    "TreeInfo",
    "Groth16Verifier",
    "VerifyingKeyRegistry",
    "DisclosureService",
    "InMemoryLedger",
]

_LAZY_EXPORTS = {
    "Groth16Verifier": "groth16",
    "VerifyingKeyRegistry": "groth16",
    "DisclosureService": "disclosure",
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
