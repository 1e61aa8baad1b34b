"""Disclosure proof bundle: Groth16 proof, public signals and mask."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import MAX_PROOF_BYTES, PUBLIC_SIGNALS_BYTES
from ..exceptions import InvalidProofStructure, StructuralError
from .mask import DisclosureMask
from .signals import DisclosurePublicSignals


@dataclass(frozen=True)
class DisclosureProof:
    """
    Wire layout: proof_len(u16 LE) || proof || public_signals(76) || mask(1).

    Attributes:
        proof: Compressed Groth16 proof bytes
        public_signals: Signals the proof is bound to
        mask: Fields the proof reveals
    """

    proof: bytes
    public_signals: DisclosurePublicSignals
    mask: DisclosureMask

    def to_bytes(self) -> bytes:
        if len(self.proof) > MAX_PROOF_BYTES:
            raise InvalidProofStructure(
                f"proof is {len(self.proof)} bytes, maximum is {MAX_PROOF_BYTES}"
            )
        return (
            len(self.proof).to_bytes(2, "little")
            + bytes(self.proof)
            + self.public_signals.to_bytes()
            + bytes([self.mask.to_bitmap()])
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DisclosureProof":
        """
        Raises:
            StructuralError: If the bundle is truncated, oversized or has
                trailing bytes
        """
        if len(data) < 2:
            raise StructuralError("disclosure proof too short")
        proof_len = int.from_bytes(data[0:2], "little")
        if proof_len > MAX_PROOF_BYTES:
            raise InvalidProofStructure(
                f"proof is {proof_len} bytes, maximum is {MAX_PROOF_BYTES}"
            )
        expected = 2 + proof_len + PUBLIC_SIGNALS_BYTES + 1
        if len(data) != expected:
            raise StructuralError(
                f"disclosure proof must be {expected} bytes, got {len(data)}"
            )
        signals_at = 2 + proof_len
        return cls(
            proof=bytes(data[2:signals_at]),
            public_signals=DisclosurePublicSignals.from_bytes(
                data[signals_at:signals_at + PUBLIC_SIGNALS_BYTES]
            ),
            mask=DisclosureMask.from_bitmap(data[-1]),
        )

    def validate(self) -> None:
        """Mask rules, a non-empty proof, and hidden fields zeroed."""
        self.mask.validate()
        if not self.proof:
            raise InvalidProofStructure("disclosure proof is empty")
        self.public_signals.validate(self.mask)
