"""
Selective disclosure workflow.

Per (target, auditor) pair:

    NoRequest -> Requested        request_disclosure (auditor)
    Requested -> Approved         approve_disclosure (target), writes a trail
    Requested -> Rejected         reject_disclosure (target), no trail

Owners may also disclose voluntarily with submit_disclosure, alone or in
batches. Every transition runs to completion against the current block
reported by the clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import MAX_DISCLOSURE_BATCH
from ..exceptions import (
    AuditorNotAuthorized,
    AuditPolicyNotFound,
    BatchTooLarge,
    CommitmentNotFound,
    DisclosureConditionsNotMet,
    DisclosureFrequencyExceeded,
    DisclosureRequestAlreadyExists,
    DisclosureRequestNotFound,
    VerificationFailed,
    VerifyingKeyNotSet,
)
from ..groth16 import CircuitId, Groth16Verifier, VerifyingKeyRegistry
from ..merkle import MerkleTreeService
from ..poseidon import PoseidonHasher
from .entities import (
    DISCLOSURE_TYPE_SELECTIVE,
    DISCLOSURE_TYPE_VERIFIED,
    AuditTrail,
    DisclosureRecord,
    DisclosureRequest,
)
from .partial import PartialMemoData
from .policy import (
    AccountId,
    AuditPolicy,
    Auditor,
    AuditorResolver,
    ConditionContext,
    DisclosureCondition,
)
from .proof import DisclosureProof
from .validator import DisclosureValidator

logger = logging.getLogger(__name__)


class BlockClock:
    """Current block height, advanced explicitly by the caller."""

    def __init__(self, height: int = 0):
        self.height = height

    def advance(self, blocks: int = 1) -> int:
        self.height += blocks
        return self.height

    def __call__(self) -> int:
        return self.height


@dataclass(frozen=True)
class DisclosureSubmission:
    """One item of a batch submission."""

    commitment: bytes
    proof: DisclosureProof
    partial: PartialMemoData


def check_spacing(
    last_block: Optional[int], current_block: int, max_frequency: Optional[int]
) -> None:
    """
    Enforce the minimum block spacing between two events.

    Raises:
        DisclosureFrequencyExceeded: If fewer than max_frequency blocks passed
    """
    if max_frequency is None or last_block is None:
        return
    blocks_since_last = max(current_block - last_block, 0)
    if blocks_since_last < max_frequency:
        raise DisclosureFrequencyExceeded(blocks_since_last, max_frequency)


class DisclosureService:
    """
    Audit policies, disclosure requests and verified disclosures.

    Args:
        tree: Commitment tree used to check that targets exist
        registry: Verifying keys; the active DISCLOSURE key is used
        clock: Callable returning the current block height
        auditor_resolver: Decides role and credential membership
        hasher: Poseidon backend for owner-hash recomputation
        max_batch: Maximum items per batch submission
    """

    def __init__(
        self,
        tree: MerkleTreeService,
        registry: VerifyingKeyRegistry,
        clock: Optional[Callable[[], int]] = None,
        auditor_resolver: Optional[AuditorResolver] = None,
        hasher: Optional[PoseidonHasher] = None,
        max_batch: int = MAX_DISCLOSURE_BATCH,
    ):
        self.tree = tree
        self.registry = registry
        self.clock = clock or BlockClock()
        self.auditor_resolver = auditor_resolver
        self.max_batch = max_batch
        self._validator = DisclosureValidator(hasher or tree.hasher)

        self._policies: Dict[AccountId, AuditPolicy] = {}
        self._requests: Dict[Tuple[AccountId, AccountId], DisclosureRequest] = {}
        self._last_request: Dict[Tuple[AccountId, AccountId], int] = {}
        self._last_disclosure: Dict[Tuple[AccountId, bytes], int] = {}
        self._records: Dict[bytes, DisclosureRecord] = {}
        self._trails: List[AuditTrail] = []

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def set_audit_policy(
        self,
        account: AccountId,
        auditors: Iterable[Auditor],
        conditions: Iterable[DisclosureCondition] = (),
        max_frequency: Optional[int] = None,
    ) -> AuditPolicy:
        """
        Publish or replace an account's policy.

        Returns:
            The stored policy; its version is one above the previous policy's

        Raises:
            TooManyAuditors: If there are no auditors or more than allowed
            TooManyConditions: If there are more conditions than allowed
        """
        previous = self._policies.get(account)
        policy = AuditPolicy(tuple(auditors), tuple(conditions), max_frequency)
        if previous is not None:
            policy = previous.next_version(policy)
        self._policies[account] = policy
        logger.info("Audit policy for %s set to version %d", account, policy.version)
        return policy

    def get_audit_policy(self, account: AccountId) -> Optional[AuditPolicy]:
        return self._policies.get(account)

    def _require_policy(self, account: AccountId) -> AuditPolicy:
        policy = self._policies.get(account)
        if policy is None:
            raise AuditPolicyNotFound(f"{account} has no audit policy")
        return policy

    def _require_authorized(self, policy: AuditPolicy, auditor: AccountId) -> None:
        if not policy.authorizes(auditor, self.auditor_resolver):
            raise AuditorNotAuthorized(f"{auditor} is not an authorized auditor")

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def request_disclosure(
        self,
        auditor: AccountId,
        target: AccountId,
        reason: bytes = b"",
        evidence: Optional[bytes] = None,
    ) -> DisclosureRequest:
        """
        File a disclosure request against `target`.

        Raises:
            DisclosureRequestAlreadyExists: If the pair already has a request
            AuditPolicyNotFound: If the target has no policy
            AuditorNotAuthorized: If the policy does not list the auditor
            DisclosureFrequencyExceeded: If the pair requested too recently
        """
        key = (target, auditor)
        if key in self._requests:
            raise DisclosureRequestAlreadyExists(
                f"{auditor} already has a pending request for {target}"
            )
        policy = self._require_policy(target)
        self._require_authorized(policy, auditor)

        current = self.clock()
        check_spacing(self._last_request.get(key), current, policy.max_frequency)

        request = DisclosureRequest(auditor, target, current, reason, evidence)
        self._requests[key] = request
        self._last_request[key] = current
        logger.info("Disclosure requested by %s from %s", auditor, target)
        return request

    def get_disclosure_request(
        self, target: AccountId, auditor: AccountId
    ) -> Optional[DisclosureRequest]:
        return self._requests.get((target, auditor))

    def approve_disclosure(
        self,
        target: AccountId,
        auditor: AccountId,
        commitment: bytes,
        proof: DisclosureProof,
        partial: PartialMemoData,
    ) -> AuditTrail:
        """
        Answer a pending request with a disclosure proof.

        Raises:
            DisclosureRequestNotFound: If no request is pending
            AuditPolicyNotFound: If the target has no policy
            DisclosureConditionsNotMet: If no policy condition holds
            DisclosureFrequencyExceeded: If the commitment was disclosed too recently
            VerifyingKeyNotSet: If no disclosure key is registered
            VerificationFailed: If the proof is rejected
        """
        key = (target, auditor)
        if key not in self._requests:
            raise DisclosureRequestNotFound(f"no pending request from {auditor} to {target}")
        policy = self._require_policy(target)

        current = self.clock()
        context = ConditionContext(
            current_block=current,
            commitment_known=self.tree.contains(commitment),
            amount=partial.value,
        )
        if not policy.conditions_met(context):
            raise DisclosureConditionsNotMet(f"no disclosure condition holds for {target}")
        check_spacing(
            self._last_disclosure.get((target, bytes(commitment))), current, policy.max_frequency
        )

        self._verify(commitment, proof, partial)

        self._store(target, commitment, proof, partial, current)
        del self._requests[key]
        trail = self._append_trail(target, auditor, commitment, current, DISCLOSURE_TYPE_VERIFIED)
        logger.info("Disclosure from %s to %s approved", target, auditor)
        return trail

    def reject_disclosure(
        self, target: AccountId, auditor: AccountId, reason: bytes = b""
    ) -> None:
        """Decline a pending request. No audit trail is written."""
        key = (target, auditor)
        if key not in self._requests:
            raise DisclosureRequestNotFound(f"no pending request from {auditor} to {target}")
        del self._requests[key]
        logger.info("Disclosure from %s to %s rejected: %r", target, auditor, reason)

    # ------------------------------------------------------------------
    # Direct submission
    # ------------------------------------------------------------------

    def submit_disclosure(
        self,
        account: AccountId,
        commitment: bytes,
        proof: DisclosureProof,
        partial: PartialMemoData,
        auditor: Optional[AccountId] = None,
    ) -> Optional[AuditTrail]:
        """
        Publish a verified disclosure for one of the account's commitments.

        Without a policy only voluntary disclosure (no auditor) is allowed.
        With a policy, a named auditor must be authorized and hold a pending
        request, and the policy's spacing applies per (account, commitment).

        Returns:
            The audit trail entry when an auditor is named, otherwise None

        Raises:
            CommitmentNotFound: If the commitment is not in the tree
            VerifyingKeyNotSet: If no disclosure key is registered
            AuditorNotAuthorized: If the auditor is not allowed
            DisclosureRequestNotFound: If the auditor has no pending request
            DisclosureFrequencyExceeded: If the pair disclosed too recently
            VerificationFailed: If the proof is rejected
        """
        if not self.tree.contains(commitment):
            raise CommitmentNotFound(f"commitment {bytes(commitment).hex()} not in tree")
        self._require_verifying_key()

        current = self.clock()
        self._check_access(account, commitment, auditor, current, {})
        self._verify(commitment, proof, partial)

        self._store(account, commitment, proof, partial, current)
        if auditor is None:
            logger.info("Voluntary disclosure by %s", account)
            return None
        return self._append_trail(
            account, auditor, commitment, current, DISCLOSURE_TYPE_SELECTIVE
        )

    def batch_submit_disclosure_proofs(
        self, account: AccountId, submissions: Sequence[DisclosureSubmission]
    ) -> List[DisclosureRecord]:
        """
        Submit several voluntary disclosures with one batched pairing check.

        Every item is checked before anything is stored; a failure anywhere
        leaves the state unchanged.

        Raises:
            BatchTooLarge: If there are more than max_batch items
            VerifyingKeyNotSet: If no disclosure key is registered
            CommitmentNotFound: If any commitment is not in the tree
            VerificationFailed: If the batched check rejects the set
        """
        if len(submissions) > self.max_batch:
            raise BatchTooLarge(f"{len(submissions)} items, maximum is {self.max_batch}")
        vk_bytes = self._require_verifying_key()
        if not submissions:
            return []

        current = self.clock()
        pending: Dict[Tuple[AccountId, bytes], int] = {}
        for item in submissions:
            if not self.tree.contains(item.commitment):
                raise CommitmentNotFound(
                    f"commitment {bytes(item.commitment).hex()} not in tree"
                )
            self._check_access(account, item.commitment, None, current, pending)
            self._validator.check_binding(item.commitment, item.proof, item.partial)
            pending[(account, bytes(item.commitment))] = current

        valid = Groth16Verifier.batch_verify(
            vk_bytes,
            [item.proof.proof for item in submissions],
            [item.proof.public_signals.to_public_inputs() for item in submissions],
            expected_inputs=CircuitId.DISCLOSURE.public_inputs,
        )
        if not valid:
            logger.warning("Batch of %d disclosure proofs rejected", len(submissions))
            raise VerificationFailed("batched disclosure verification failed")

        records = [
            self._store(account, item.commitment, item.proof, item.partial, current)
            for item in submissions
        ]
        logger.info("Stored %d disclosures for %s", len(records), account)
        return records

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_disclosure(self, commitment: bytes) -> Optional[DisclosureRecord]:
        return self._records.get(bytes(commitment))

    def get_audit_trails(
        self,
        account: Optional[AccountId] = None,
        auditor: Optional[AccountId] = None,
    ) -> List[AuditTrail]:
        """Trail entries in insertion order, optionally filtered."""
        return [
            trail
            for trail in self._trails
            if (account is None or trail.account == account)
            and (auditor is None or trail.auditor == auditor)
        ]

    def last_disclosure_block(self, account: AccountId, commitment: bytes) -> Optional[int]:
        return self._last_disclosure.get((account, bytes(commitment)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_verifying_key(self) -> bytes:
        if not self.registry.versions(CircuitId.DISCLOSURE):
            raise VerifyingKeyNotSet("no verifying key registered for disclosures")
        return self.registry.get(CircuitId.DISCLOSURE).data

    def _check_access(
        self,
        account: AccountId,
        commitment: bytes,
        auditor: Optional[AccountId],
        current: int,
        pending: Dict[Tuple[AccountId, bytes], int],
    ) -> None:
        policy = self._policies.get(account)
        if policy is None:
            if auditor is not None:
                raise AuditorNotAuthorized(
                    f"{account} has no audit policy; only voluntary disclosure is allowed"
                )
            return
        if auditor is not None:
            self._require_authorized(policy, auditor)
            if (account, auditor) not in self._requests:
                raise DisclosureRequestNotFound(
                    f"no pending request from {auditor} to {account}"
                )
        key = (account, bytes(commitment))
        last = pending.get(key, self._last_disclosure.get(key))
        check_spacing(last, current, policy.max_frequency)

    def _verify(
        self, commitment: bytes, proof: DisclosureProof, partial: PartialMemoData
    ) -> None:
        self._validator.check_binding(commitment, proof, partial)
        self._require_verifying_key()
        if not self.registry.verify(
            CircuitId.DISCLOSURE, proof.proof, proof.public_signals.to_public_inputs()
        ):
            raise VerificationFailed("disclosure proof rejected")

    def _store(
        self,
        account: AccountId,
        commitment: bytes,
        proof: DisclosureProof,
        partial: PartialMemoData,
        current: int,
    ) -> DisclosureRecord:
        record = DisclosureRecord(
            commitment=bytes(commitment),
            proof=proof.to_bytes(),
            disclosed_data=partial.to_bytes(),
            block=current,
        )
        self._records[record.commitment] = record
        self._last_disclosure[(account, record.commitment)] = current
        return record

    def _append_trail(
        self,
        account: AccountId,
        auditor: AccountId,
        commitment: bytes,
        current: int,
        disclosure_type: str,
    ) -> AuditTrail:
        trail = AuditTrail.create(
            account,
            auditor,
            bytes(commitment),
            current,
            disclosure_type,
            sequence=len(self._trails),
        )
        self._trails.append(trail)
        logger.debug("Audit trail %s appended", trail.trail_hash.hex())
        return trail
