"""Poseidon hash over the BN254 scalar field."""

from .factory import HASHER_ENV_VAR, get_hasher, resolve_backend_name
from .hasher import PoseidonHasher
from .params import PoseidonParams, poseidon_params
from .portable import PortablePoseidonHasher

__all__ = [
    "HASHER_ENV_VAR",
    "get_hasher",
    "resolve_backend_name",
    "PoseidonHasher",
    "PoseidonParams",
    "poseidon_params",
    "PortablePoseidonHasher",
]
