"""
Commitment and nullifier derivation.

    commitment = hash_4(value, asset_id, owner_pubkey, blinding)
    nullifier  = hash_2(commitment, spending_key)

Both services depend only on a PoseidonHasher and hold no state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cbor2

from .exceptions import StructuralError
from .field import ZERO, FieldElement
from .poseidon import PoseidonHasher, get_hasher
from .security import RandomnessSource

logger = logging.getLogger(__name__)

NOTE_VERSION = 1


@dataclass(frozen=True)
class Note:
    """
    Plaintext pre-image of a commitment. Held off-ledger by its owner.

    Attributes:
        value: Amount (u64)
        asset_id: Asset identifier (u64; disclosure reveals it as u32)
        owner_pubkey: Owner public key as a field element
        blinding: Random blinding factor (hiding)
    """

    value: int
    asset_id: int
    owner_pubkey: FieldElement
    blinding: FieldElement

    def commitment(self, hasher: Optional[PoseidonHasher] = None) -> FieldElement:
        return CommitmentService(hasher).create_commitment(
            self.value, self.asset_id, self.owner_pubkey, self.blinding
        )

    def to_bytes(self) -> bytes:
        """Serialize for wallet storage (CBOR)."""
        return cbor2.dumps(
            {
                "version": NOTE_VERSION,
                "value": self.value,
                "asset_id": self.asset_id,
                "owner_pubkey": self.owner_pubkey.to_bytes(),
                "blinding": self.blinding.to_bytes(),
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Note":
        try:
            obj = cbor2.loads(data)
        except (cbor2.CBORDecodeError, ValueError, TypeError) as exc:
            raise StructuralError(f"Invalid note encoding: {exc}") from exc
        if not isinstance(obj, dict) or obj.get("version") != NOTE_VERSION:
            raise StructuralError("Unsupported note encoding")
        try:
            return cls(
                value=obj["value"],
                asset_id=obj["asset_id"],
                owner_pubkey=FieldElement.from_bytes(obj["owner_pubkey"]),
                blinding=FieldElement.from_bytes(obj["blinding"]),
            )
        except KeyError as exc:
            raise StructuralError(f"Note field missing: {exc}") from exc

    @classmethod
    def random(
        cls,
        value: int,
        asset_id: int,
        owner_pubkey: FieldElement,
        rng: Optional[RandomnessSource] = None,
    ) -> "Note":
        """Create a note with a fresh non-zero blinding factor."""
        rng = rng or RandomnessSource()
        return cls(value, asset_id, owner_pubkey, rng.get_random_field_element())


class CommitmentService:
    """Derives hiding, binding note commitments."""

    def __init__(self, hasher: Optional[PoseidonHasher] = None):
        self._hasher = hasher or get_hasher()

    def create_commitment(
        self,
        value: int,
        asset_id: int,
        owner_pubkey: FieldElement,
        blinding: FieldElement,
    ) -> FieldElement:
        """
        Commit to a note.

        Args:
            value: Amount (u64)
            asset_id: Asset identifier (u64)
            owner_pubkey: Owner public key
            blinding: Blinding factor

        Returns:
            Commitment field element

        Raises:
            ValueError: If value or asset_id does not fit in u64
        """
        commitment = self._hasher.hash_4(
            FieldElement.from_u64(value),
            FieldElement.from_u64(asset_id),
            owner_pubkey,
            blinding,
        )
        logger.debug("Created commitment %s", commitment.hex())
        return commitment


class NullifierService:
    """Derives one-time nullifiers; only the spending-key holder can do this."""

    def __init__(self, hasher: Optional[PoseidonHasher] = None):
        self._hasher = hasher or get_hasher()

    def compute_nullifier(
        self, commitment: FieldElement, spending_key: FieldElement
    ) -> FieldElement:
        return self._hasher.hash_2(commitment, spending_key)


def hash_owner_pubkey(
    owner_pubkey: FieldElement, hasher: Optional[PoseidonHasher] = None
) -> FieldElement:
    """Owner hash revealed by selective disclosure: hash_2(owner_pubkey, 0)."""
    hasher = hasher or get_hasher()
    return hasher.hash_2(owner_pubkey, ZERO)
