"""
Binding checks between a disclosure proof, its target and the revealed data.

Nothing in a submission is trusted: the commitment in the public signals
must be the target, revealed fields must equal the disclosed data, and the
owner hash is recomputed from the disclosed public key.
"""

from __future__ import annotations

from typing import Optional

from ..commitments import hash_owner_pubkey
from ..exceptions import (
    CommitmentMismatch,
    InvalidDisclosureMask,
    InvalidPublicSignals,
    OwnerHashMismatch,
)
from ..poseidon import PoseidonHasher, get_hasher
from .partial import PartialMemoData
from .proof import DisclosureProof


class DisclosureValidator:
    """Structural and binding validation of disclosure submissions."""

    def __init__(self, hasher: Optional[PoseidonHasher] = None):
        self._hasher = hasher or get_hasher()

    def check_binding(
        self, commitment: bytes, proof: DisclosureProof, partial: PartialMemoData
    ) -> None:
        """
        Validate everything except the pairing check.

        Raises:
            InvalidDisclosureMask: Bad mask, or disclosed data disagrees with it
            InvalidPublicSignals: Hidden fields set, or revealed values differ
            CommitmentMismatch: Signals are bound to another commitment
            OwnerHashMismatch: Revealed owner hash is not hash_2(pk, 0)
        """
        proof.validate()
        signals = proof.public_signals
        mask = proof.mask

        if signals.commitment != bytes(commitment):
            raise CommitmentMismatch("public signals are bound to a different commitment")
        if partial.mask() != mask:
            raise InvalidDisclosureMask(
                f"disclosed data reveals {partial.mask().to_bitmap():#06b}, "
                f"mask is {mask.to_bitmap():#06b}"
            )
        if mask.disclose_value and partial.value != signals.revealed_value:
            raise InvalidPublicSignals("revealed value differs from disclosed value")
        if mask.disclose_asset_id and partial.asset_id != signals.revealed_asset_id:
            raise InvalidPublicSignals("revealed asset id differs from disclosed asset id")
        if mask.disclose_owner:
            expected = hash_owner_pubkey(partial.owner_pubkey, self._hasher).to_bytes()
            if expected != signals.revealed_owner_hash:
                raise OwnerHashMismatch("revealed owner hash does not match owner key")

