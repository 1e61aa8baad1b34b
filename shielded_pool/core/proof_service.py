"""
Query-side services over ledger state.

The ledger itself (storage, blocks) is external; it is reached through the
ChainStateReader port. Services always read at the best block.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from .config import MAX_PROOF_DEPTH
from .exceptions import InvalidLeafIndex, PoolNotInitialized, TreeNotInitialized
from .merkle import ZERO_LEAF, ZeroHashCache
from .types import MerkleProof, PoolStatistics, TreeDepth, TreeInfo

logger = logging.getLogger(__name__)


class ChainStateReader(ABC):
    """Read access to ledger state at a given block."""

    @abstractmethod
    def best_hash(self) -> bytes:
        """Hash of the best block."""

    @abstractmethod
    def get_merkle_root(self, block: bytes) -> bytes:
        """Commitment tree root at `block`."""

    @abstractmethod
    def get_tree_size(self, block: bytes) -> int:
        """Number of leaves at `block`."""

    @abstractmethod
    def get_leaf(self, block: bytes, index: int) -> Optional[bytes]:
        """Leaf at `index`, or None if storage holds nothing there."""

    def get_node(self, block: bytes, level: int, index: int) -> Optional[bytes]:
        """
        Stored tree node at `block`, level 0 being the leaves.

        Readers without interior node storage return None above level 0,
        and the node is then rebuilt from its children.
        """
        if level == 0:
            return self.get_leaf(block, index)
        return None

    @abstractmethod
    def get_total_balance(self, block: bytes) -> int:
        """Total shielded balance at `block`."""

    @abstractmethod
    def get_asset_balance(self, block: bytes, asset_id: int) -> int:
        """Shielded balance of one asset at `block`."""

    @abstractmethod
    def is_nullifier_spent(self, block: bytes, nullifier: bytes) -> bool:
        """Whether `nullifier` has been published by `block`."""


# ============================================================================
# MERKLE PROOFS
# ============================================================================


class MerkleProofService:
    """
    Fixed-depth sparse proof generation for the proving circuit.

    The circuit assumes a tree of depth MAX_PROOF_DEPTH padded with empty
    subtrees. At each level the sibling is read from storage only while it
    lies inside the populated range for that level,
    `sibling_index < ceil(tree_size / 2^level)`; otherwise the level's zero
    hash stands in. For leaf 0 at level 0 this means storage is used only
    once at least two leaves exist.

    Each sibling costs one `get_node` read when the reader stores interior
    nodes; otherwise it is rebuilt from the nodes below it.
    """

    def __init__(
        self,
        reader: ChainStateReader,
        zero_hashes: ZeroHashCache,
        depth: int = MAX_PROOF_DEPTH,
    ):
        self.reader = reader
        self.zero_hashes = zero_hashes
        self.depth = depth

    def generate_proof(self, leaf_index: int) -> MerkleProof:
        """
        Build the authentication path for a leaf at the best block.

        Args:
            leaf_index: Leaf to prove

        Returns:
            MerkleProof with exactly `depth` siblings

        Raises:
            TreeNotInitialized: If the tree holds no leaves
            InvalidLeafIndex: If leaf_index >= tree size
        """
        block = self.reader.best_hash()
        tree_size = self.reader.get_tree_size(block)
        if tree_size == 0:
            raise TreeNotInitialized("cannot build a proof for an empty tree")
        if not 0 <= leaf_index < tree_size:
            raise InvalidLeafIndex(leaf_index, tree_size)

        nodes: Dict[Tuple[int, int], bytes] = {}
        siblings: List[bytes] = []
        index = leaf_index
        for level in range(self.depth):
            sibling_index = index ^ 1
            populated = -(-tree_size >> level)
            if sibling_index < populated:
                siblings.append(self._node(block, tree_size, level, sibling_index, nodes))
            else:
                siblings.append(self.zero_hashes.get(level))
            index >>= 1

        logger.debug("Generated sparse proof for leaf %d of %d", leaf_index, tree_size)
        return MerkleProof(siblings=siblings, leaf_index=leaf_index, tree_depth=self.depth)

    def _node(
        self,
        block: bytes,
        tree_size: int,
        level: int,
        index: int,
        memo: Dict[Tuple[int, int], bytes],
    ) -> bytes:
        if (index << level) >= tree_size:
            return self.zero_hashes.get(level)
        key = (level, index)
        cached = memo.get(key)
        if cached is not None:
            return cached
        node = self.reader.get_node(block, level, index)
        if node is None and level == 0:
            node = ZERO_LEAF
        elif node is None:
            left = self._node(block, tree_size, level - 1, 2 * index, memo)
            right = self._node(block, tree_size, level - 1, 2 * index + 1, memo)
            node = self.zero_hashes.hash_pair(left, right)
        memo[key] = node
        return node

    def get_tree_info(self) -> TreeInfo:
        """(root, size, logical depth) at the best block."""
        block = self.reader.best_hash()
        root = self.reader.get_merkle_root(block)
        size = self.reader.get_tree_size(block)
        return TreeInfo(root=root, size=size, depth=TreeDepth.from_tree_size(size).value)


# ============================================================================
# POOL QUERIES
# ============================================================================


class PoolQueryService:
    """Pool-wide metrics at the best block."""

    def __init__(self, reader: ChainStateReader):
        self.reader = reader

    def get_statistics(self, asset_ids: Iterable[int] = ()) -> PoolStatistics:
        """
        Raises:
            PoolNotInitialized: If no commitment has been inserted yet
        """
        block = self.reader.best_hash()
        root = self.reader.get_merkle_root(block)
        size = self.reader.get_tree_size(block)
        if size == 0:
            raise PoolNotInitialized("pool holds no commitments")
        return PoolStatistics(
            merkle_root=root,
            commitment_count=size,
            total_balance=self.reader.get_total_balance(block),
            tree_depth=TreeDepth.from_tree_size(size).value,
            asset_balances={
                asset_id: self.reader.get_asset_balance(block, asset_id)
                for asset_id in asset_ids
            },
        )

    def get_merkle_root(self) -> bytes:
        return self.reader.get_merkle_root(self.reader.best_hash())

    def get_commitment_count(self) -> int:
        return self.reader.get_tree_size(self.reader.best_hash())

    def get_total_balance(self) -> int:
        return self.reader.get_total_balance(self.reader.best_hash())

    def get_asset_balance(self, asset_id: int) -> int:
        return self.reader.get_asset_balance(self.reader.best_hash(), asset_id)


class NullifierQueryService:
    """Spent-status lookups against the external spent set."""

    def __init__(self, reader: ChainStateReader):
        self.reader = reader

    def is_spent(self, nullifier: bytes) -> bool:
        return self.reader.is_nullifier_spent(self.reader.best_hash(), nullifier)

    def check_batch(self, nullifiers: Iterable[bytes]) -> List[Tuple[bytes, bool]]:
        """Spent status per nullifier, all read at the same block."""
        block = self.reader.best_hash()
        return [
            (nullifier, self.reader.is_nullifier_spent(block, nullifier))
            for nullifier in nullifiers
        ]
