"""Groth16 verification over BN254."""

from .circuits import CircuitId, estimate_verification_cost
from .registry import ProofSystem, VerificationStats, VerifyingKeyRegistry
from .serialization import Proof, VerifyingKey
from .verifier import (
    Groth16Verifier,
    batch_verify_proofs,
    public_input_to_scalar,
    scalar_to_public_input,
    verify_proof,
)

__all__ = [
    "CircuitId",
    "estimate_verification_cost",
    "ProofSystem",
    "VerificationStats",
    "VerifyingKeyRegistry",
    "Proof",
    "VerifyingKey",
    "Groth16Verifier",
    "batch_verify_proofs",
    "public_input_to_scalar",
    "scalar_to_public_input",
    "verify_proof",
]
