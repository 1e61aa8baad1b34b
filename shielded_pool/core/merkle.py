"""
Poseidon Merkle tree engine for note commitments.

Nodes are hash_2(left, right) over 32-byte little-endian field encodings.
Empty subtrees hash to per-level zero hashes:

    zero[0] = 0x00 * 32
    zero[n] = hash_2(zero[n-1], zero[n-1])

The incremental tree keeps only the frontier (one node per level), giving
O(depth) storage and O(depth) updates. Proof generation by full
reconstruction lives here; the fixed-depth sparse variant that reads from
ledger storage lives in proof_service and must agree with it.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from .config import (
    DEFAULT_HISTORIC_ROOTS,
    FIELD_ELEMENT_BYTES,
    MERKLE_TREE_DEPTH,
    ZERO_HASH_LEVELS,
)
from .exceptions import InvalidLeafIndex, StructuralError, TreeFull, TreeNotInitialized
from .poseidon import PoseidonHasher, get_hasher
from .types import MerkleProof

logger = logging.getLogger(__name__)

ZERO_LEAF = bytes(FIELD_ELEMENT_BYTES)


def _check_node(node: bytes) -> bytes:
    if not isinstance(node, (bytes, bytearray)) or len(node) != FIELD_ELEMENT_BYTES:
        raise StructuralError(f"tree node must be {FIELD_ELEMENT_BYTES} bytes")
    return bytes(node)


# ============================================================================
# ZERO HASHES
# ============================================================================


class ZeroHashCache:
    """
    Per-level hashes of empty subtrees, built once on first use.

    The cache belongs to whoever constructs it (usually a MerkleTreeService)
    and is passed explicitly to everything that needs it. Building is pure,
    so concurrent first calls compute identical tuples and the first stored
    one wins; the cache is read-only afterwards.
    """

    def __init__(self, hasher: Optional[PoseidonHasher] = None, levels: int = ZERO_HASH_LEVELS):
        self.hasher = hasher or get_hasher()
        self.levels = levels
        self._hashes: Optional[Tuple[bytes, ...]] = None

    def _build(self) -> Tuple[bytes, ...]:
        hashes = [ZERO_LEAF]
        for _ in range(self.levels):
            hashes.append(self.hasher.hash_bytes_2(hashes[-1], hashes[-1]))
        return tuple(hashes)

    def get(self, level: int) -> bytes:
        """Zero hash for a level in [0, levels]."""
        if not 0 <= level <= self.levels:
            raise ValueError(f"zero hash level out of range: {level}")
        if self._hashes is None:
            built = self._build()
            if self._hashes is None:
                self._hashes = built
        return self._hashes[level]

    def hash_pair(self, left: bytes, right: bytes) -> bytes:
        return self.hasher.hash_bytes_2(left, right)


# ============================================================================
# HISTORIC ROOTS
# ============================================================================


class HistoricRoots:
    """
    Bounded FIFO of recent roots with O(1) membership checks.

    Example:
        >>> roots = HistoricRoots(capacity=2)
        >>> roots.add(b"a" * 32); roots.add(b"b" * 32); roots.add(b"c" * 32)
        >>> b"a" * 32 in roots
        False
    """

    def __init__(self, capacity: int = DEFAULT_HISTORIC_ROOTS):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._order: Deque[bytes] = deque()
        self._counts: Counter = Counter()

    def add(self, root: bytes) -> None:
        if len(self._order) >= self.capacity:
            oldest = self._order.popleft()
            self._counts[oldest] -= 1
            if self._counts[oldest] == 0:
                del self._counts[oldest]
        self._order.append(root)
        self._counts[root] += 1

    def __contains__(self, root: object) -> bool:
        return root in self._counts

    def __len__(self) -> int:
        return len(self._order)

    def latest(self) -> Optional[bytes]:
        return self._order[-1] if self._order else None

    def roots(self) -> List[bytes]:
        """Roots from oldest to newest."""
        return list(self._order)


# ============================================================================
# INCREMENTAL TREE
# ============================================================================


class IncrementalMerkleTree:
    """
    Append-only frontier tree of fixed depth.

    States: empty (next_index == 0), growing, full (next_index == capacity).

    With `keep_nodes`, every node on an insertion path is stored as well, as
    it stands at the current size (a partially filled subtree is hashed with
    zero padding). Rows grow left to right, one entry per touched index.
    """

    def __init__(
        self,
        zero_hashes: ZeroHashCache,
        depth: int = MERKLE_TREE_DEPTH,
        keep_nodes: bool = False,
    ):
        if not 1 <= depth <= zero_hashes.levels:
            raise ValueError(f"depth out of range: {depth}")
        self.depth = depth
        self.zero_hashes = zero_hashes
        self.frontier: List[bytes] = [zero_hashes.get(level) for level in range(depth)]
        self.next_index = 0
        self.root = zero_hashes.get(depth)
        self.nodes: Optional[List[List[bytes]]] = (
            [[] for _ in range(depth + 1)] if keep_nodes else None
        )

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def is_full(self) -> bool:
        return self.next_index >= self.capacity

    def is_empty(self) -> bool:
        return self.next_index == 0

    def insert(self, leaf: bytes) -> int:
        """
        Append a leaf and update the root.

        Args:
            leaf: 32-byte commitment

        Returns:
            Index of the inserted leaf

        Raises:
            TreeFull: If the tree is at capacity (state unchanged)
        """
        leaf = _check_node(leaf)
        if self.is_full():
            raise TreeFull(f"tree of depth {self.depth} holds {self.capacity} leaves")

        index = self.next_index
        current_index = index
        current_hash = leaf
        for level in range(self.depth):
            self._store(level, current_index, current_hash)
            if current_index % 2 == 0:
                self.frontier[level] = current_hash
                current_hash = self.zero_hashes.hash_pair(
                    current_hash, self.zero_hashes.get(level)
                )
            else:
                current_hash = self.zero_hashes.hash_pair(self.frontier[level], current_hash)
            current_index >>= 1

        self._store(self.depth, 0, current_hash)
        self.root = current_hash
        self.next_index += 1
        logger.debug("Inserted leaf %d, root %s", index, self.root.hex())
        return index

    def _store(self, level: int, index: int, node: bytes) -> None:
        if self.nodes is None:
            return
        row = self.nodes[level]
        if index == len(row):
            row.append(node)
        else:
            row[index] = node

    def node(self, level: int, index: int) -> Optional[bytes]:
        """Stored node at (level, index), or None if not kept or never written."""
        if self.nodes is None or not 0 <= level <= self.depth:
            return None
        row = self.nodes[level]
        if 0 <= index < len(row):
            return row[index]
        return None


# ============================================================================
# FULL RECONSTRUCTION
# ============================================================================


def _next_level(nodes: List[bytes], level: int, zero_hashes: ZeroHashCache) -> List[bytes]:
    if len(nodes) % 2 == 1:
        nodes = nodes + [zero_hashes.get(level)]
    return [
        zero_hashes.hash_pair(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)
    ]


def compute_root_from_leaves(
    leaves: Sequence[bytes], zero_hashes: ZeroHashCache, depth: int = MERKLE_TREE_DEPTH
) -> bytes:
    """
    Root of a depth-`depth` tree whose first leaves are `leaves`.

    Equals the incremental tree's root after inserting the same leaves.
    """
    if not leaves:
        return zero_hashes.get(depth)
    nodes = [_check_node(leaf) for leaf in leaves]
    for level in range(depth):
        nodes = _next_level(nodes, level, zero_hashes)
    return nodes[0]


def generate_full_proof(
    leaves: Sequence[bytes],
    leaf_index: int,
    zero_hashes: ZeroHashCache,
    depth: int = MERKLE_TREE_DEPTH,
) -> MerkleProof:
    """
    Authentication path built by reconstructing every level from all leaves.

    Odd-length levels are padded with that level's zero hash, so nodes
    outside the populated region read as empty subtrees.

    Args:
        leaves: Complete ordered leaf list
        leaf_index: Leaf to prove
        zero_hashes: Zero-hash cache of the tree
        depth: Number of levels in the path

    Returns:
        MerkleProof with exactly `depth` siblings

    Raises:
        TreeNotInitialized: If there are no leaves
        InvalidLeafIndex: If leaf_index >= len(leaves)
    """
    if not leaves:
        raise TreeNotInitialized("cannot build a proof for an empty tree")
    if not 0 <= leaf_index < len(leaves):
        raise InvalidLeafIndex(leaf_index, len(leaves))

    nodes = [_check_node(leaf) for leaf in leaves]
    siblings: List[bytes] = []
    index = leaf_index
    for level in range(depth):
        if len(nodes) % 2 == 1:
            nodes = nodes + [zero_hashes.get(level)]
        siblings.append(nodes[index ^ 1])
        nodes = [
            zero_hashes.hash_pair(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)
        ]
        index >>= 1

    return MerkleProof(siblings=siblings, leaf_index=leaf_index, tree_depth=depth)


def compute_root_from_path(
    leaf: bytes, siblings: Iterable[bytes], leaf_index: int, hasher: PoseidonHasher
) -> bytes:
    """Fold a leaf up its path; bit 0 hashes (current, sibling), bit 1 (sibling, current)."""
    current = _check_node(leaf)
    index = leaf_index
    for sibling in siblings:
        sibling = _check_node(sibling)
        if index & 1 == 0:
            current = hasher.hash_bytes_2(current, sibling)
        else:
            current = hasher.hash_bytes_2(sibling, current)
        index >>= 1
    return current


def verify_proof(
    root: bytes, leaf: bytes, proof: MerkleProof, hasher: Optional[PoseidonHasher] = None
) -> bool:
    """
    Check that `leaf` sits at `proof.leaf_index` under `root`.

    Returns:
        True if the folded path equals the root, False otherwise
    """
    hasher = hasher or get_hasher()
    computed = compute_root_from_path(leaf, proof.siblings, proof.leaf_index, hasher)
    return computed == root


# ============================================================================
# TREE SERVICE
# ============================================================================


class MerkleTreeService:
    """
    Ledger-side commitment tree: incremental tree, leaf storage and recent roots.

    Owns the zero-hash cache for everything built on it.
    """

    def __init__(
        self,
        hasher: Optional[PoseidonHasher] = None,
        depth: int = MERKLE_TREE_DEPTH,
        historic_roots: int = DEFAULT_HISTORIC_ROOTS,
    ):
        self.hasher = hasher or get_hasher()
        self.zero_hashes = ZeroHashCache(self.hasher)
        self.tree = IncrementalMerkleTree(self.zero_hashes, depth, keep_nodes=True)
        self.historic_roots = HistoricRoots(historic_roots)
        self._leaves: List[bytes] = []
        self._index_by_leaf: dict[bytes, int] = {}
        self.historic_roots.add(self.tree.root)

    @property
    def depth(self) -> int:
        return self.tree.depth

    @property
    def root(self) -> bytes:
        return self.tree.root

    @property
    def size(self) -> int:
        return self.tree.next_index

    def insert_leaf(self, commitment: bytes) -> int:
        """
        Insert a commitment and record the new root.

        Raises:
            TreeFull: If the tree is at capacity
        """
        index = self.tree.insert(commitment)
        leaf = bytes(commitment)
        self._leaves.append(leaf)
        self._index_by_leaf.setdefault(leaf, index)
        self.historic_roots.add(self.tree.root)
        return index

    def is_known_root(self, root: bytes) -> bool:
        return root in self.historic_roots

    def get_leaf(self, index: int) -> Optional[bytes]:
        if 0 <= index < len(self._leaves):
            return self._leaves[index]
        return None

    def get_node(self, level: int, index: int) -> Optional[bytes]:
        """Interior node as of the current size; level 0 is the leaf row."""
        return self.tree.node(level, index)

    def leaves(self) -> List[bytes]:
        return list(self._leaves)

    def find_leaf_index(self, commitment: bytes) -> Optional[int]:
        return self._index_by_leaf.get(bytes(commitment))

    def contains(self, commitment: bytes) -> bool:
        return bytes(commitment) in self._index_by_leaf

    def generate_full_proof(self, leaf_index: int, depth: Optional[int] = None) -> MerkleProof:
        return generate_full_proof(
            self._leaves, leaf_index, self.zero_hashes, depth or self.depth
        )

    def verify_proof(self, root: bytes, leaf: bytes, proof: MerkleProof) -> bool:
        return verify_proof(root, leaf, proof, self.hasher)
