"""Circuit identifiers, arities and structural checks run before pairing."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional, Sequence

from ..config import (
    BASE_VERIFICATION_COST,
    CIRCUIT_PUBLIC_INPUTS,
    MAX_PUBLIC_INPUTS,
    MAX_VK_BYTES,
    MIN_PROOF_BYTES,
    MIN_VK_BYTES,
    PER_INPUT_COST,
)
from ..exceptions import (
    InvalidProofStructure,
    InvalidPublicInputCount,
    InvalidVerifyingKey,
)


class CircuitId(IntEnum):
    """Circuits with registered verifying keys."""

    TRANSFER = 1
    UNSHIELD = 2
    SHIELD = 3
    DISCLOSURE = 4

    @property
    def public_inputs(self) -> Optional[int]:
        """Fixed arity, or None when the verifying key decides."""
        return CIRCUIT_PUBLIC_INPUTS.get(int(self))


def expected_public_inputs(circuit_id: int) -> Optional[int]:
    return CIRCUIT_PUBLIC_INPUTS.get(int(circuit_id))


def validate_input_count(inputs: Sequence[bytes], expected: int) -> None:
    if len(inputs) != expected or len(inputs) > MAX_PUBLIC_INPUTS:
        raise InvalidPublicInputCount(expected, len(inputs))


def validate_proof_structure(proof_bytes: bytes) -> None:
    if len(proof_bytes) < MIN_PROOF_BYTES:
        raise InvalidProofStructure(
            f"proof is {len(proof_bytes)} bytes, minimum is {MIN_PROOF_BYTES}"
        )


def validate_vk_structure(vk_bytes: bytes) -> None:
    if not vk_bytes:
        raise InvalidVerifyingKey("verifying key is empty")
    if len(vk_bytes) < MIN_VK_BYTES:
        raise InvalidVerifyingKey(
            f"verifying key is {len(vk_bytes)} bytes, minimum is {MIN_VK_BYTES}"
        )
    if len(vk_bytes) > MAX_VK_BYTES:
        raise InvalidVerifyingKey(
            f"verifying key is {len(vk_bytes)} bytes, maximum is {MAX_VK_BYTES}"
        )


def estimate_verification_cost(num_public_inputs: int) -> int:
    """Relative cost of one verification: base plus a per-input term."""
    return BASE_VERIFICATION_COST + PER_INPUT_COST * num_public_inputs
