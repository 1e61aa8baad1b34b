"""
Groth16 verification over BN254.

Single proofs are checked with

    e(A, B) = e(alpha, beta) * e(vk_x, gamma) * e(C, delta)
    vk_x    = IC[0] + sum(x_i * IC[i + 1])

evaluated as one product of Miller loops and a single final exponentiation.

Batches use a random linear combination with scalars r_i:

    prod e(r_i A_i, B_i) * e(sum r_i vk_x_i, -gamma) * e(sum r_i C_i, -delta)
        = e(alpha, beta) ^ sum(r_i)

which needs one final exponentiation for the whole batch. The r_i are
derived by hashing the verifying key and every proof and input in the batch,
so a batch is reproducible and the scalars are fixed only after the proofs
are. A batch failure does not say which proof was bad; callers that need
attribution re-check items with `verify`.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from py_ecc.optimized_bn128 import optimized_curve as curve
from py_ecc.fields import optimized_bn128_FQ12 as FQ12
from py_ecc.optimized_bn128 import optimized_pairing

from ..config import BATCH_SCALAR_DOMAIN, FIELD_ELEMENT_BYTES, FIELD_MODULUS
from ..exceptions import StructuralError, VerificationFailed
from ..security import derive_scalars
from .circuits import validate_input_count, validate_proof_structure, validate_vk_structure
from .serialization import Proof, VerifyingKey

logger = logging.getLogger(__name__)

ScalarSource = Callable[[int], List[int]]


# ============================================================================
# INPUT PREPARATION
# ============================================================================


def public_input_to_scalar(data: bytes) -> int:
    """32-byte big-endian public input, reduced modulo the scalar field."""
    if len(data) != FIELD_ELEMENT_BYTES:
        raise StructuralError(
            f"public input must be {FIELD_ELEMENT_BYTES} bytes, got {len(data)}"
        )
    return int.from_bytes(data, "big") % FIELD_MODULUS


def scalar_to_public_input(value: int) -> bytes:
    return (value % FIELD_MODULUS).to_bytes(FIELD_ELEMENT_BYTES, "big")


def prepare_inputs(vk: VerifyingKey, inputs: Sequence[int]):
    """vk_x = IC[0] + sum(x_i * IC[i + 1])."""
    if len(inputs) != vk.num_public_inputs:
        raise StructuralError(
            f"verifying key expects {vk.num_public_inputs} inputs, got {len(inputs)}"
        )
    acc = vk.ic[0]
    for scalar, point in zip(inputs, vk.ic[1:]):
        acc = curve.add(acc, curve.multiply(point, scalar % FIELD_MODULUS))
    return acc


def _miller(g2_point, g1_point):
    return optimized_pairing.pairing(g2_point, g1_point, final_exponentiate=False)


# ============================================================================
# SINGLE PROOF
# ============================================================================


def verify_proof(vk: VerifyingKey, proof: Proof, inputs: Sequence[int]) -> bool:
    """Pairing check on decoded artifacts. Pure and deterministic."""
    vk_x = prepare_inputs(vk, inputs)
    product = (
        _miller(proof.b, curve.neg(proof.a))
        * _miller(vk.beta_g2, vk.alpha_g1)
        * _miller(vk.gamma_g2, vk_x)
        * _miller(vk.delta_g2, proof.c)
    )
    result = optimized_pairing.final_exponentiate(product) == FQ12.one()
    logger.debug("Groth16 pairing check: %s", result)
    return result


# ============================================================================
# BATCH
# ============================================================================


def batch_verify_proofs(
    vk: VerifyingKey,
    proofs: Sequence[Proof],
    inputs: Sequence[Sequence[int]],
    scalars: Sequence[int],
) -> bool:
    """Randomized batch check on decoded artifacts with caller-supplied scalars."""
    if len(proofs) != len(inputs) or len(proofs) != len(scalars):
        raise StructuralError(
            f"batch has {len(proofs)} proofs, {len(inputs)} input sets, "
            f"{len(scalars)} scalars"
        )
    if not proofs:
        return True

    product = FQ12.one()
    acc_vk_x = curve.Z1
    acc_c = curve.Z1
    total_r = 0
    for proof, proof_inputs, r in zip(proofs, inputs, scalars):
        r %= FIELD_MODULUS
        total_r = (total_r + r) % FIELD_MODULUS
        product = product * _miller(proof.b, curve.multiply(proof.a, r))
        acc_vk_x = curve.add(acc_vk_x, curve.multiply(prepare_inputs(vk, proof_inputs), r))
        acc_c = curve.add(acc_c, curve.multiply(proof.c, r))

    product = product * _miller(curve.neg(vk.gamma_g2), acc_vk_x)
    product = product * _miller(curve.neg(vk.delta_g2), acc_c)
    # Dividing by e(alpha, beta)^total_r folds the right-hand side into the
    # same final exponentiation
    product = product * _miller(vk.beta_g2, curve.neg(curve.multiply(vk.alpha_g1, total_r)))
    return optimized_pairing.final_exponentiate(product) == FQ12.one()


# ============================================================================
# BYTE-LEVEL FACADE
# ============================================================================


class Groth16Verifier:
    """Verify serialized Groth16 proofs."""

    @staticmethod
    def verify(
        vk_bytes: bytes,
        proof_bytes: bytes,
        public_inputs: Sequence[bytes],
        expected_inputs: Optional[int] = None,
    ) -> bool:
        """
        Verify one proof.

        Args:
            vk_bytes: Compressed verifying key
            proof_bytes: Compressed proof
            public_inputs: 32-byte big-endian public inputs
            expected_inputs: Circuit arity; defaults to the key's IC count - 1

        Returns:
            True if the pairing check holds, False otherwise

        Raises:
            StructuralError: On malformed bytes or an arity mismatch
        """
        validate_vk_structure(vk_bytes)
        validate_proof_structure(proof_bytes)
        vk = VerifyingKey.from_bytes(vk_bytes)
        expected = vk.num_public_inputs if expected_inputs is None else expected_inputs
        validate_input_count(public_inputs, expected)
        proof = Proof.from_bytes(proof_bytes)
        scalars = [public_input_to_scalar(item) for item in public_inputs]
        return verify_proof(vk, proof, scalars)

    @staticmethod
    def require_valid(
        vk_bytes: bytes,
        proof_bytes: bytes,
        public_inputs: Sequence[bytes],
        expected_inputs: Optional[int] = None,
    ) -> None:
        """Like verify, raising VerificationFailed on a negative result."""
        if not Groth16Verifier.verify(vk_bytes, proof_bytes, public_inputs, expected_inputs):
            logger.warning("Groth16 proof rejected")
            raise VerificationFailed("Groth16 pairing check failed")

    @staticmethod
    def batch_verify(
        vk_bytes: bytes,
        proofs: Sequence[bytes],
        public_inputs: Sequence[Sequence[bytes]],
        expected_inputs: Optional[int] = None,
        scalar_source: Optional[ScalarSource] = None,
    ) -> bool:
        """
        Verify many proofs against one key with a single final exponentiation.

        Structural problems in any item raise before the pairing step runs;
        cryptographic failures collapse into a False result.

        Args:
            vk_bytes: Compressed verifying key
            proofs: Compressed proofs
            public_inputs: Public inputs per proof
            expected_inputs: Circuit arity; defaults to the key's IC count - 1
            scalar_source: Optional callable returning n non-zero scalars;
                defaults to scalars derived from the batch transcript

        Returns:
            True only if every proof is valid (with overwhelming probability)
        """
        if len(proofs) != len(public_inputs):
            raise StructuralError(
                f"batch has {len(proofs)} proofs and {len(public_inputs)} input sets"
            )
        if not proofs:
            return True

        validate_vk_structure(vk_bytes)
        vk = VerifyingKey.from_bytes(vk_bytes)
        expected = vk.num_public_inputs if expected_inputs is None else expected_inputs

        decoded_proofs = []
        decoded_inputs = []
        for proof_bytes, item_inputs in zip(proofs, public_inputs):
            validate_proof_structure(proof_bytes)
            validate_input_count(item_inputs, expected)
            decoded_proofs.append(Proof.from_bytes(proof_bytes))
            decoded_inputs.append([public_input_to_scalar(item) for item in item_inputs])

        if scalar_source is not None:
            scalars = list(scalar_source(len(proofs)))
        else:
            transcript = [vk_bytes]
            for proof_bytes, item_inputs in zip(proofs, public_inputs):
                transcript.append(proof_bytes)
                transcript.extend(item_inputs)
            scalars = derive_scalars(transcript, len(proofs), BATCH_SCALAR_DOMAIN)

        if any(r % FIELD_MODULUS == 0 for r in scalars):
            raise StructuralError("batch scalars must be non-zero")

        result = batch_verify_proofs(vk, decoded_proofs, decoded_inputs, scalars)
        logger.debug("Groth16 batch of %d: %s", len(proofs), result)
        return result
