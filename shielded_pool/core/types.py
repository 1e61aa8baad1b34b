"""
Common wire types for the shielded pool engine.

This module provides:
1. MerkleProof - fixed-depth authentication path for the proving circuit
2. TreeInfo - (root, size, depth) snapshot of the commitment tree
3. PoolStatistics - aggregate pool metrics
4. TreeDepth - logical depth derived from the number of leaves

All types serialize to CBOR with a version tag.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import cbor2

from .config import FIELD_ELEMENT_BYTES
from .exceptions import StructuralError

WIRE_VERSION = 1


def _loads(data: bytes, kind: str) -> Dict[str, Any]:
    try:
        obj = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError, TypeError, EOFError) as exc:
        raise StructuralError(f"Invalid {kind} encoding: {exc}") from exc
    if not isinstance(obj, dict):
        raise StructuralError(f"{kind} encoding must be a map")
    if obj.get("version") != WIRE_VERSION:
        raise StructuralError(f"Unsupported {kind} version: {obj.get('version')!r}")
    return obj


def _check_hash(value: Any, name: str) -> bytes:
    if not isinstance(value, bytes) or len(value) != FIELD_ELEMENT_BYTES:
        raise StructuralError(f"{name} must be {FIELD_ELEMENT_BYTES} bytes")
    return value


# ============================================================================
# TREE DEPTH
# ============================================================================


@dataclass(frozen=True)
class TreeDepth:
    """
    Logical depth of a tree holding a given number of leaves.

    Example:
        >>> TreeDepth.from_tree_size(5).value
        3
    """

    value: int

    @classmethod
    def from_tree_size(cls, size: int) -> "TreeDepth":
        if size <= 1:
            return cls(size)
        # ceil(log2(size)) without floating point
        return cls((size - 1).bit_length())


# ============================================================================
# MERKLE PROOF
# ============================================================================


@dataclass(frozen=True)
class MerkleProof:
    """
    Authentication path from a leaf to the root.

    Attributes:
        siblings: One 32-byte sibling per level, leaf level first
        leaf_index: Position of the leaf; bit i selects the side at level i
        tree_depth: Number of levels (always len(siblings))
    """

    siblings: List[bytes]
    leaf_index: int
    tree_depth: int

    def __post_init__(self) -> None:
        if len(self.siblings) != self.tree_depth:
            raise StructuralError(
                f"path has {len(self.siblings)} siblings for depth {self.tree_depth}"
            )
        for sibling in self.siblings:
            _check_hash(sibling, "sibling")

    def path_indices(self) -> List[int]:
        """Per-level direction bits (0 = current node is the left child)."""
        return [(self.leaf_index >> level) & 1 for level in range(self.tree_depth)]

    def to_bytes(self) -> bytes:
        return cbor2.dumps(
            {
                "version": WIRE_VERSION,
                "siblings": list(self.siblings),
                "leaf_index": self.leaf_index,
                "tree_depth": self.tree_depth,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "MerkleProof":
        obj = _loads(data, "merkle proof")
        try:
            return cls(
                siblings=list(obj["siblings"]),
                leaf_index=obj["leaf_index"],
                tree_depth=obj["tree_depth"],
            )
        except (KeyError, TypeError) as exc:
            raise StructuralError(f"Invalid merkle proof fields: {exc}") from exc


# ============================================================================
# TREE INFO / POOL STATISTICS
# ============================================================================


@dataclass(frozen=True)
class TreeInfo:
    """Snapshot of the commitment tree at one block."""

    root: bytes
    size: int
    depth: int

    def to_bytes(self) -> bytes:
        return cbor2.dumps(
            {
                "version": WIRE_VERSION,
                "root": self.root,
                "size": self.size,
                "depth": self.depth,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "TreeInfo":
        obj = _loads(data, "tree info")
        try:
            return cls(
                root=_check_hash(obj["root"], "root"),
                size=obj["size"],
                depth=obj["depth"],
            )
        except KeyError as exc:
            raise StructuralError(f"Tree info field missing: {exc}") from exc


@dataclass(frozen=True)
class PoolStatistics:
    """Aggregate pool metrics at one block."""

    merkle_root: bytes
    commitment_count: int
    total_balance: int
    tree_depth: int
    asset_balances: Dict[int, int] = field(default_factory=dict)

    @property
    def is_initialized(self) -> bool:
        return self.commitment_count > 0

    def to_bytes(self) -> bytes:
        return cbor2.dumps(
            {
                "version": WIRE_VERSION,
                "merkle_root": self.merkle_root,
                "commitment_count": self.commitment_count,
                "total_balance": self.total_balance,
                "tree_depth": self.tree_depth,
                "asset_balances": dict(self.asset_balances),
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "PoolStatistics":
        obj = _loads(data, "pool statistics")
        try:
            return cls(
                merkle_root=_check_hash(obj["merkle_root"], "merkle_root"),
                commitment_count=obj["commitment_count"],
                total_balance=obj["total_balance"],
                tree_depth=obj["tree_depth"],
                asset_balances=dict(obj.get("asset_balances", {})),
            )
        except KeyError as exc:
            raise StructuralError(f"Pool statistics field missing: {exc}") from exc
