from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from ..exceptions import InsufficientPoolBalance, NullifierAlreadySpent, UnknownBlock
from ..merkle import MerkleTreeService
from ..proof_service import ChainStateReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _BlockState:
    root: bytes
    size: int
    total_balance: int
    asset_balances: Dict[int, int] = field(default_factory=dict)
    spent: FrozenSet[bytes] = frozenset()


class InMemoryLedger(ChainStateReader):
    """
    Ledger state kept in memory, one block per state transition.

    Notes:
    - Backed by a MerkleTreeService, so roots match the on-ledger tree.
    - Intended for tests and the CLI; nothing is persisted.
    """

    def __init__(self, tree: Optional[MerkleTreeService] = None) -> None:
        self.tree = tree or MerkleTreeService()
        self.height = 0
        self._total_balance = 0
        self._asset_balances: Dict[int, int] = {}
        self._spent: set[bytes] = set()
        self._blocks: Dict[bytes, _BlockState] = {}
        self._best = self._seal()

    def _seal(self) -> bytes:
        block_hash = hashlib.blake2b(
            self.height.to_bytes(8, "little") + self.tree.root, digest_size=32
        ).digest()
        self._blocks[block_hash] = _BlockState(
            root=self.tree.root,
            size=self.tree.size,
            total_balance=self._total_balance,
            asset_balances=dict(self._asset_balances),
            spent=frozenset(self._spent),
        )
        self._best = block_hash
        return block_hash

    def _state(self, block: bytes) -> _BlockState:
        try:
            return self._blocks[block]
        except KeyError:
            raise UnknownBlock(f"unknown block {block.hex()}") from None

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def shield(self, commitment: bytes, value: int, asset_id: int = 0) -> int:
        """Insert a commitment and credit the pool; returns the leaf index."""
        index = self.tree.insert_leaf(commitment)
        self._total_balance += value
        self._asset_balances[asset_id] = self._asset_balances.get(asset_id, 0) + value
        self.height += 1
        self._seal()
        logger.debug("Shielded %d of asset %d at leaf %d", value, asset_id, index)
        return index

    def insert_commitment(self, commitment: bytes) -> int:
        """Insert a transfer output commitment without moving balance."""
        index = self.tree.insert_leaf(commitment)
        self.height += 1
        self._seal()
        return index

    def spend(self, nullifier: bytes, value: int = 0, asset_id: int = 0) -> None:
        """Publish a nullifier, debiting `value` for unshields."""
        if nullifier in self._spent:
            raise NullifierAlreadySpent(f"nullifier {nullifier.hex()} already spent")
        if value < 0:
            raise ValueError(f"value must be non-negative, got {value}")
        available = self._asset_balances.get(asset_id, 0)
        if value > available:
            raise InsufficientPoolBalance(asset_id, available, value)
        self._spent.add(nullifier)
        self._total_balance -= value
        self._asset_balances[asset_id] = self._asset_balances.get(asset_id, 0) - value
        self.height += 1
        self._seal()

    # ------------------------------------------------------------------
    # ChainStateReader
    # ------------------------------------------------------------------

    def best_hash(self) -> bytes:
        return self._best

    def get_merkle_root(self, block: bytes) -> bytes:
        return self._state(block).root

    def get_tree_size(self, block: bytes) -> int:
        return self._state(block).size

    def get_leaf(self, block: bytes, index: int) -> Optional[bytes]:
        if index >= self._state(block).size:
            return None
        return self.tree.get_leaf(index)

    def get_node(self, block: bytes, level: int, index: int) -> Optional[bytes]:
        # Nodes over a fully populated range never change once written;
        # a partial node is only current at the latest block.
        size = self._state(block).size
        if (index << level) >= size:
            return None
        if ((index + 1) << level) <= size or size == self.tree.size:
            return self.tree.get_node(level, index)
        return None

    def get_total_balance(self, block: bytes) -> int:
        return self._state(block).total_balance

    def get_asset_balance(self, block: bytes, asset_id: int) -> int:
        return self._state(block).asset_balances.get(asset_id, 0)

    def is_nullifier_spent(self, block: bytes, nullifier: bytes) -> bool:
        return nullifier in self._state(block).spent
