"""
Engine configuration for the shielded pool core.

Constants describe the field, the Poseidon parameterization shared with the
proving circuits, tree geometry, Groth16 limits and disclosure limits.
`EngineConfig` carries the per-deployment knobs and can be loaded from YAML.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigurationError

# ============================================================================
# FIELD
# ============================================================================

# BN254 scalar field order (Fr)
FIELD_MODULUS = 0x30644E72E131A029B85045B68181585D2833E84879B9709143E1F593F0000001
FIELD_BITS = 254
FIELD_ELEMENT_BYTES = 32

# ============================================================================
# POSEIDON
# ============================================================================

# circomlib-compatible parameterization: x^5 S-box, 8 full rounds, partial
# rounds indexed by width t (t - 2).
POSEIDON_ALPHA = 5
POSEIDON_FULL_ROUNDS = 8
POSEIDON_PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
POSEIDON_SUPPORTED_ARITIES = (1, 2, 3, 4)

# ============================================================================
# MERKLE TREE
# ============================================================================

# Depth of the on-ledger incremental tree
MERKLE_TREE_DEPTH = 20

# Fixed path length expected by the proving circuit
MAX_PROOF_DEPTH = 20

# Zero hashes are precomputed for levels 0..ZERO_HASH_LEVELS
ZERO_HASH_LEVELS = 21

# Number of recent roots accepted for proofs built against stale state
DEFAULT_HISTORIC_ROOTS = 100

# ============================================================================
# GROTH16
# ============================================================================

CIRCUIT_ID_TRANSFER = 1
CIRCUIT_ID_UNSHIELD = 2
CIRCUIT_ID_SHIELD = 3
CIRCUIT_ID_DISCLOSURE = 4

# Fixed arities; circuits not listed take their arity from the verifying key
CIRCUIT_PUBLIC_INPUTS = {
    CIRCUIT_ID_TRANSFER: 5,
    CIRCUIT_ID_UNSHIELD: 5,
    CIRCUIT_ID_DISCLOSURE: 4,
}

MAX_PUBLIC_INPUTS = 32
MIN_PROOF_BYTES = 100
MIN_VK_BYTES = 200
MAX_VK_BYTES = 10_000

BASE_VERIFICATION_COST = 100_000
PER_INPUT_COST = 10_000

# Domain separator for deriving batch verification scalars
BATCH_SCALAR_DOMAIN = b"SHIELDED_POOL_GROTH16_BATCH_V1"

# ============================================================================
# DISCLOSURE
# ============================================================================

MAX_AUDITORS = 10
MAX_CONDITIONS = 10
MAX_DISCLOSURE_BATCH = 10
MAX_PROOF_BYTES = 512
PUBLIC_SIGNALS_BYTES = 76
PADDED_PUBLIC_SIGNALS_BYTES = 97

# ============================================================================
# HASHER BACKENDS
# ============================================================================

HASHER_BACKENDS = ("portable", "gmpy2")
DEFAULT_HASHER_BACKEND = "portable"


# ============================================================================
# ENGINE CONFIG
# ============================================================================


@dataclass(frozen=True)
class EngineConfig:
    """
    Per-deployment engine settings.

    Attributes:
        tree_depth: Depth of the incremental tree (capacity 2^tree_depth)
        historic_roots: Size of the recent-roots window
        hasher_backend: Poseidon backend name ("portable" or "gmpy2")
        max_disclosure_batch: Maximum submissions per disclosure batch
    """

    tree_depth: int = MERKLE_TREE_DEPTH
    historic_roots: int = DEFAULT_HISTORIC_ROOTS
    hasher_backend: str = DEFAULT_HASHER_BACKEND
    max_disclosure_batch: int = MAX_DISCLOSURE_BATCH

    def __post_init__(self) -> None:
        if not 1 <= self.tree_depth <= ZERO_HASH_LEVELS - 1:
            raise ConfigurationError(f"tree_depth out of range: {self.tree_depth}")
        if self.historic_roots < 1:
            raise ConfigurationError(
                f"historic_roots must be positive, got {self.historic_roots}"
            )
        if self.hasher_backend not in HASHER_BACKENDS:
            raise ConfigurationError(
                f"Invalid hasher backend: {self.hasher_backend!r}. "
                f"Valid options: {', '.join(HASHER_BACKENDS)}"
            )
        if not 1 <= self.max_disclosure_batch <= MAX_DISCLOSURE_BATCH:
            raise ConfigurationError(
                f"max_disclosure_batch out of range: {self.max_disclosure_batch}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    Missing keys keep their defaults. An empty file yields the default config.

    Args:
        path: Path to a YAML mapping

    Returns:
        EngineConfig

    Raises:
        ConfigurationError: If the file is not a mapping or holds invalid values
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return EngineConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return EngineConfig.from_mapping(data)


# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    from py_ecc.optimized_bn128 import optimized_curve

    assert FIELD_MODULUS.bit_length() == FIELD_BITS, "Field modulus size mismatch"
    assert FIELD_MODULUS % 4 == 1, "BN254 scalar field order is 1 mod 4"
    assert optimized_curve.curve_order == FIELD_MODULUS, "BN254 scalar field mismatch"
    assert MAX_PROOF_DEPTH <= ZERO_HASH_LEVELS, "Zero-hash cache too shallow"
    assert MERKLE_TREE_DEPTH <= ZERO_HASH_LEVELS, "Zero-hash cache too shallow"
    assert DEFAULT_HASHER_BACKEND in HASHER_BACKENDS, "Invalid default backend"
    assert all(n <= MAX_PUBLIC_INPUTS for n in CIRCUIT_PUBLIC_INPUTS.values())
    assert PUBLIC_SIGNALS_BYTES == 32 + 8 + 4 + 32, "Public signal layout mismatch"
    assert PADDED_PUBLIC_SIGNALS_BYTES > PUBLIC_SIGNALS_BYTES
    return True


# Auto-validate on import
validate_config()
