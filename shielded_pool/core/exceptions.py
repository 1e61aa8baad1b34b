"""
Custom exceptions for the shielded pool engine.

Errors fall into four categories that tell the caller what to do next:

- StructuralError: malformed bytes or lengths. Fatal, never retried.
- DomainInvariantViolation: a well-formed request the current state rejects.
  The caller chooses different input.
- CryptographicFailure: a proof or signature did not check out. A normal
  negative outcome, not a crash.
- ConfigurationError: a prerequisite step (registering a key, publishing a
  policy, choosing a backend) has not been completed.
"""

from __future__ import annotations


class ShieldedPoolError(Exception):
    """Base exception for shielded pool errors."""

    pass


# ============================================================================
# CATEGORIES
# ============================================================================


class StructuralError(ShieldedPoolError):
    """Malformed byte length or encoding."""

    pass


class DomainInvariantViolation(ShieldedPoolError):
    """Request rejected by the current engine state."""

    pass


class CryptographicFailure(ShieldedPoolError):
    """Cryptographic check returned a negative result."""

    pass


class ConfigurationError(ShieldedPoolError):
    """Configuration error or missing prerequisite."""

    pass


# ============================================================================
# STRUCTURAL
# ============================================================================


class InvalidFieldElement(StructuralError):
    """Bytes do not encode a 32-byte field element."""

    pass


class DeserializationError(StructuralError):
    """Compressed curve point, proof or verifying key could not be decoded."""

    pass


class InvalidPublicInputCount(StructuralError):
    """Public input count does not match the circuit arity."""

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"expected {expected} public inputs, got {got}")


class InvalidProofStructure(StructuralError):
    """Proof bytes are shorter than the structural minimum."""

    pass


class InvalidVerifyingKey(StructuralError):
    """Verifying key bytes are empty, too short or too long."""

    pass


class InvalidPublicSignals(StructuralError):
    """Disclosure public signals have the wrong length or layout."""

    pass


# ============================================================================
# DOMAIN
# ============================================================================


class InvalidLeafIndex(DomainInvariantViolation):
    """Requested leaf index is outside the populated tree."""

    def __init__(self, index: int, tree_size: int):
        self.index = index
        self.tree_size = tree_size
        super().__init__(f"leaf index {index} out of range for tree size {tree_size}")


class TreeNotInitialized(DomainInvariantViolation):
    """Proof requested against an empty tree."""

    pass


class TreeFull(DomainInvariantViolation):
    """Insert attempted on a tree at capacity."""

    pass


class InvalidDisclosureMask(DomainInvariantViolation):
    """Mask reveals the blinding factor or reveals nothing."""

    pass


class DisclosureConditionsNotMet(DomainInvariantViolation):
    """No configured disclosure condition currently holds."""

    pass


class DisclosureRequestAlreadyExists(DomainInvariantViolation):
    """A pending request already exists for this (target, auditor) pair."""

    pass


class DisclosureRequestNotFound(DomainInvariantViolation):
    """No pending request for this (target, auditor) pair."""

    pass


class AuditorNotAuthorized(DomainInvariantViolation):
    """Auditor is not listed in the target's audit policy."""

    pass


class DisclosureFrequencyExceeded(DomainInvariantViolation):
    """Disclosure attempted before the policy's minimum spacing elapsed."""

    def __init__(self, blocks_since_last: int, max_frequency: int):
        self.blocks_since_last = blocks_since_last
        self.max_frequency = max_frequency
        super().__init__(
            f"{blocks_since_last} blocks since last disclosure, "
            f"minimum spacing is {max_frequency}"
        )


class PoolNotInitialized(DomainInvariantViolation):
    """Pool statistics requested before any commitment was inserted."""

    pass


class NullifierAlreadySpent(DomainInvariantViolation):
    """Nullifier has already been published."""

    pass


class InsufficientPoolBalance(DomainInvariantViolation):
    """Unshield would take more than the pool holds."""

    def __init__(self, asset_id: int, available: int, requested: int):
        self.asset_id = asset_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"cannot debit {requested} of asset {asset_id}, pool holds {available}"
        )


class UnknownBlock(DomainInvariantViolation):
    """Block hash is not known to the ledger."""

    pass


class CommitmentNotFound(DomainInvariantViolation):
    """Commitment is not present in the tree."""

    pass


class CommitmentMismatch(DomainInvariantViolation):
    """Public signals are bound to a different commitment."""

    pass


class OwnerHashMismatch(DomainInvariantViolation):
    """Revealed owner hash does not match the disclosed owner."""

    pass


class TooManyAuditors(DomainInvariantViolation):
    """Audit policy lists more auditors than allowed."""

    pass


class TooManyConditions(DomainInvariantViolation):
    """Audit policy lists more conditions than allowed."""

    pass


class BatchTooLarge(DomainInvariantViolation):
    """Batch exceeds the maximum number of items."""

    pass


class CircuitAlreadyExists(DomainInvariantViolation):
    """A verifying key is already registered for this circuit version."""

    pass


class CircuitNotFound(DomainInvariantViolation):
    """No verifying key is registered for this circuit."""

    pass


class VersionNotFound(DomainInvariantViolation):
    """Circuit exists but the requested version does not."""

    pass


# ============================================================================
# CRYPTOGRAPHIC
# ============================================================================


class VerificationFailed(CryptographicFailure):
    """Pairing check rejected the proof."""

    pass


# ============================================================================
# CONFIGURATION
# ============================================================================


class VerifyingKeyNotSet(ConfigurationError):
    """No verifying key has been configured for the disclosure circuit."""

    pass


class AuditPolicyNotFound(ConfigurationError):
    """Target account has not published an audit policy."""

    pass


class UnknownBackend(ConfigurationError):
    """Hasher backend name is not registered."""

    pass
