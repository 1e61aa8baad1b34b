"""
Disclosure workflow tests.

Proofs come from the trapdoor verifying key registered for the disclosure
circuit, so every accepted submission passes a real pairing check.
"""

import pytest

from shielded_pool.core.commitments import Note, hash_owner_pubkey
from shielded_pool.core.exceptions import (
    AuditorNotAuthorized,
    AuditPolicyNotFound,
    BatchTooLarge,
    CommitmentMismatch,
    CommitmentNotFound,
    DisclosureConditionsNotMet,
    DisclosureFrequencyExceeded,
    DisclosureRequestAlreadyExists,
    DisclosureRequestNotFound,
    InvalidDisclosureMask,
    OwnerHashMismatch,
    VerificationFailed,
    VerifyingKeyNotSet,
)
from shielded_pool.core.field import FieldElement
from shielded_pool.core.disclosure import (
    AccountAuditor,
    Always,
    AmountThreshold,
    BlockClock,
    DisclosureMask,
    DisclosureProof,
    DisclosurePublicSignals,
    DisclosureService,
    DisclosureSubmission,
    PartialMemoData,
    RoleAuditor,
    TimeDelay,
    check_spacing,
)
from shielded_pool.core.groth16 import CircuitId, VerifyingKeyRegistry
from shielded_pool.core.merkle import MerkleTreeService

OWNER = "alice"
AUDITOR = "auditor"


def _note(value=500, asset_id=7, owner=99, blinding=1234) -> Note:
    return Note(value, asset_id, FieldElement(owner), FieldElement(blinding))


def _signals(note, mask, hasher, commitment=None, owner_hash=None):
    return DisclosurePublicSignals(
        commitment=commitment or note.commitment(hasher).to_bytes(),
        revealed_value=note.value if mask.disclose_value else 0,
        revealed_asset_id=note.asset_id if mask.disclose_asset_id else 0,
        revealed_owner_hash=owner_hash
        or (
            hash_owner_pubkey(note.owner_pubkey, hasher).to_bytes()
            if mask.disclose_owner
            else bytes(32)
        ),
    )


@pytest.fixture
def clock():
    return BlockClock(100)


@pytest.fixture
def tree(hasher):
    return MerkleTreeService(hasher, depth=4)


@pytest.fixture
def registry(disclosure_trapdoor):
    registry = VerifyingKeyRegistry()
    registry.register(CircuitId.DISCLOSURE, 1, disclosure_trapdoor.vk_bytes)
    return registry


@pytest.fixture
def service(tree, registry, clock):
    return DisclosureService(tree, registry, clock=clock)


@pytest.fixture
def disclose(tree, hasher, disclosure_trapdoor):
    """Insert a note's commitment and build a valid disclosure for it."""

    def build(note=None, mask=None, insert=True):
        note = note or _note()
        mask = mask or DisclosureMask.all()
        commitment = note.commitment(hasher).to_bytes()
        if insert and not tree.contains(commitment):
            tree.insert_leaf(commitment)
        signals = _signals(note, mask, hasher)
        proof = DisclosureProof(
            disclosure_trapdoor.prove_public(signals.to_public_inputs()), signals, mask
        )
        return commitment, proof, PartialMemoData.from_note(note, mask)

    return build


# ============================================================================
# RATE LIMITING
# ============================================================================


class TestCheckSpacing:
    def test_denied_within_window(self):
        with pytest.raises(DisclosureFrequencyExceeded) as exc_info:
            check_spacing(50, 140, 100)
        assert exc_info.value.blocks_since_last == 90
        assert exc_info.value.max_frequency == 100

    def test_allowed_after_window(self):
        check_spacing(50, 151, 100)
        check_spacing(50, 150, 100)

    def test_no_limit_or_no_history(self):
        check_spacing(None, 0, 100)
        check_spacing(50, 51, None)


# ============================================================================
# POLICIES AND REQUESTS
# ============================================================================


class TestPolicies:
    def test_versions_increment(self, service):
        first = service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        second = service.set_audit_policy(OWNER, [AccountAuditor("other")], [Always()])
        assert (first.version, second.version) == (1, 2)
        assert service.get_audit_policy(OWNER) == second
        assert service.get_audit_policy("nobody") is None


class TestRequests:
    def test_request_needs_policy(self, service):
        with pytest.raises(AuditPolicyNotFound):
            service.request_disclosure(AUDITOR, OWNER)

    def test_request_needs_authorized_auditor(self, service):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        with pytest.raises(AuditorNotAuthorized):
            service.request_disclosure("mallory", OWNER)

    def test_duplicate_request(self, service):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        request = service.request_disclosure(AUDITOR, OWNER, reason=b"tax audit")
        assert request.requested_at == 100
        assert service.get_disclosure_request(OWNER, AUDITOR) == request
        with pytest.raises(DisclosureRequestAlreadyExists):
            service.request_disclosure(AUDITOR, OWNER)

    def test_request_spacing(self, service, clock):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], max_frequency=10)
        service.request_disclosure(AUDITOR, OWNER)
        service.reject_disclosure(OWNER, AUDITOR)
        clock.advance(9)
        with pytest.raises(DisclosureFrequencyExceeded):
            service.request_disclosure(AUDITOR, OWNER)
        clock.advance(1)
        service.request_disclosure(AUDITOR, OWNER)

    def test_role_auditor_uses_resolver(self, tree, registry, clock):
        role = b"\x52" * 32
        service = DisclosureService(
            tree,
            registry,
            clock=clock,
            auditor_resolver=lambda entry, account: account == "regulator",
        )
        service.set_audit_policy(OWNER, [RoleAuditor(role)])
        service.request_disclosure("regulator", OWNER)
        with pytest.raises(AuditorNotAuthorized):
            service.request_disclosure("someone", OWNER)

    def test_role_auditor_without_resolver(self, service):
        service.set_audit_policy(OWNER, [RoleAuditor(b"\x52" * 32)])
        with pytest.raises(AuditorNotAuthorized):
            service.request_disclosure("regulator", OWNER)

    def test_reject(self, service):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        service.request_disclosure(AUDITOR, OWNER)
        service.reject_disclosure(OWNER, AUDITOR, reason=b"no")
        assert service.get_disclosure_request(OWNER, AUDITOR) is None
        assert service.get_audit_trails() == []
        with pytest.raises(DisclosureRequestNotFound):
            service.reject_disclosure(OWNER, AUDITOR)


# ============================================================================
# APPROVAL
# ============================================================================


class TestApproval:
    def test_full_lifecycle(self, service, registry, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], [Always()])
        service.request_disclosure(AUDITOR, OWNER, reason=b"review")
        commitment, proof, partial = disclose()

        trail = service.approve_disclosure(OWNER, AUDITOR, commitment, proof, partial)

        assert trail.disclosure_type == "verified_disclosure"
        assert (trail.account, trail.auditor, trail.timestamp) == (OWNER, AUDITOR, 100)
        assert service.get_disclosure_request(OWNER, AUDITOR) is None
        record = service.get_disclosure(commitment)
        assert record.block == 100
        assert PartialMemoData.from_bytes(record.disclosed_data) == partial
        assert DisclosureProof.from_bytes(record.proof) == proof
        assert service.last_disclosure_block(OWNER, commitment) == 100
        assert registry.statistics(CircuitId.DISCLOSURE, 1).successes == 1

    def test_approve_without_request(self, service, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], [Always()])
        with pytest.raises(DisclosureRequestNotFound):
            service.approve_disclosure(OWNER, AUDITOR, *disclose())

    def test_no_conditions_means_no_approval(self, service, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        service.request_disclosure(AUDITOR, OWNER)
        with pytest.raises(DisclosureConditionsNotMet):
            service.approve_disclosure(OWNER, AUDITOR, *disclose())

    def test_time_delay(self, service, clock, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], [TimeDelay(after_block=200)])
        service.request_disclosure(AUDITOR, OWNER)
        commitment, proof, partial = disclose()
        with pytest.raises(DisclosureConditionsNotMet):
            service.approve_disclosure(OWNER, AUDITOR, commitment, proof, partial)
        clock.advance(100)
        service.approve_disclosure(OWNER, AUDITOR, commitment, proof, partial)

    def test_amount_threshold_uses_revealed_value(self, service, disclose):
        service.set_audit_policy(
            OWNER, [AccountAuditor(AUDITOR)], [AmountThreshold(min_amount=1000)]
        )
        service.request_disclosure(AUDITOR, OWNER)
        with pytest.raises(DisclosureConditionsNotMet):
            service.approve_disclosure(
                OWNER, AUDITOR, *disclose(mask=DisclosureMask.only_value())
            )
        service.approve_disclosure(
            OWNER, AUDITOR, *disclose(note=_note(value=1500), mask=DisclosureMask.only_value())
        )

    def test_failed_verification_keeps_request(self, service, registry, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], [Always()])
        service.request_disclosure(AUDITOR, OWNER)
        commitment, proof, partial = disclose()
        _, other_proof, _ = disclose(note=_note(blinding=5))
        forged = DisclosureProof(other_proof.proof, proof.public_signals, proof.mask)

        with pytest.raises(VerificationFailed):
            service.approve_disclosure(OWNER, AUDITOR, commitment, forged, partial)

        assert service.get_disclosure_request(OWNER, AUDITOR) is not None
        assert service.get_disclosure(commitment) is None
        assert registry.statistics(CircuitId.DISCLOSURE, 1).failures == 1

    def test_audit_trails_are_unique(self, service, disclose):
        service.set_audit_policy(
            OWNER, [AccountAuditor(AUDITOR), AccountAuditor("second")], [Always()]
        )
        service.request_disclosure(AUDITOR, OWNER)
        service.request_disclosure("second", OWNER)
        args = disclose()
        first = service.approve_disclosure(OWNER, AUDITOR, *args)
        second = service.approve_disclosure(OWNER, "second", *args)

        assert first.trail_hash != second.trail_hash
        assert service.get_audit_trails(account=OWNER) == [first, second]
        assert service.get_audit_trails(auditor="second") == [second]

    def test_approval_respects_commitment_spacing(self, service, clock, disclose):
        service.set_audit_policy(
            OWNER, [AccountAuditor(AUDITOR)], [Always()], max_frequency=100
        )
        args = disclose()
        service.submit_disclosure(OWNER, *args)
        clock.advance(10)
        service.request_disclosure(AUDITOR, OWNER)

        with pytest.raises(DisclosureFrequencyExceeded) as exc_info:
            service.approve_disclosure(OWNER, AUDITOR, *args)
        assert exc_info.value.blocks_since_last == 10
        assert service.get_disclosure_request(OWNER, AUDITOR) is not None

        clock.advance(90)
        trail = service.approve_disclosure(OWNER, AUDITOR, *args)
        assert trail.timestamp == 200


# ============================================================================
# DIRECT SUBMISSION
# ============================================================================


class TestSubmit:
    def test_voluntary_disclosure(self, service, disclose):
        commitment, proof, partial = disclose()
        assert service.submit_disclosure(OWNER, commitment, proof, partial) is None
        assert service.get_disclosure(commitment).block == 100
        assert service.get_audit_trails() == []

    def test_unknown_commitment(self, service, disclose):
        with pytest.raises(CommitmentNotFound):
            service.submit_disclosure(OWNER, *disclose(insert=False))

    def test_missing_verifying_key(self, tree, clock, disclose):
        service = DisclosureService(tree, VerifyingKeyRegistry(), clock=clock)
        with pytest.raises(VerifyingKeyNotSet):
            service.submit_disclosure(OWNER, *disclose())

    def test_auditor_without_policy(self, service, disclose):
        with pytest.raises(AuditorNotAuthorized):
            service.submit_disclosure(OWNER, *disclose(), auditor=AUDITOR)

    def test_auditor_needs_pending_request(self, service, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        with pytest.raises(DisclosureRequestNotFound):
            service.submit_disclosure(OWNER, *disclose(), auditor=AUDITOR)

    def test_selective_disclosure_to_auditor(self, service, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)])
        service.request_disclosure(AUDITOR, OWNER)
        trail = service.submit_disclosure(OWNER, *disclose(), auditor=AUDITOR)
        assert trail.disclosure_type == "selective_disclosure"

    def test_spacing_per_commitment(self, service, clock, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], max_frequency=100)
        args = disclose()
        service.submit_disclosure(OWNER, *args)
        clock.advance(50)
        with pytest.raises(DisclosureFrequencyExceeded):
            service.submit_disclosure(OWNER, *args)
        # A different commitment has its own window
        service.submit_disclosure(OWNER, *disclose(note=_note(blinding=77)))
        clock.advance(50)
        service.submit_disclosure(OWNER, *args)

    def test_commitment_mismatch(self, service, disclose):
        commitment, _, _ = disclose(note=_note(blinding=1))
        _, proof, partial = disclose(note=_note(blinding=2))
        with pytest.raises(CommitmentMismatch):
            service.submit_disclosure(OWNER, commitment, proof, partial)

    def test_owner_hash_mismatch(self, service, disclose, hasher, disclosure_trapdoor):
        note = _note()
        commitment, _, partial = disclose(note=note)
        mask = DisclosureMask.all()
        wrong = hash_owner_pubkey(FieldElement(100), hasher).to_bytes()
        signals = _signals(note, mask, hasher, owner_hash=wrong)
        proof = DisclosureProof(
            disclosure_trapdoor.prove_public(signals.to_public_inputs()), signals, mask
        )
        with pytest.raises(OwnerHashMismatch):
            service.submit_disclosure(OWNER, commitment, proof, partial)

    def test_partial_must_match_mask(self, service, disclose):
        commitment, proof, _ = disclose()
        partial = PartialMemoData.from_note(_note(), DisclosureMask.only_value())
        with pytest.raises(InvalidDisclosureMask):
            service.submit_disclosure(OWNER, commitment, proof, partial)


# ============================================================================
# BATCH SUBMISSION
# ============================================================================


class TestBatch:
    def test_batch_stores_all(self, service, disclose):
        items = [
            DisclosureSubmission(*disclose(note=_note(blinding=b)))
            for b in (1, 2, 3)
        ]
        records = service.batch_submit_disclosure_proofs(OWNER, items)
        assert [r.commitment for r in records] == [item.commitment for item in items]
        for item in items:
            assert service.get_disclosure(item.commitment) is not None

    def test_empty_batch(self, service):
        assert service.batch_submit_disclosure_proofs(OWNER, []) == []

    def test_batch_too_large(self, tree, registry, clock, disclose):
        service = DisclosureService(tree, registry, clock=clock, max_batch=1)
        items = [DisclosureSubmission(*disclose(note=_note(blinding=b))) for b in (1, 2)]
        with pytest.raises(BatchTooLarge):
            service.batch_submit_disclosure_proofs(OWNER, items)

    def test_missing_verifying_key(self, tree, clock):
        service = DisclosureService(tree, VerifyingKeyRegistry(), clock=clock)
        with pytest.raises(VerifyingKeyNotSet):
            service.batch_submit_disclosure_proofs(OWNER, [])

    def test_invalid_item_rejects_whole_batch(self, service, disclose):
        good = DisclosureSubmission(*disclose(note=_note(blinding=1)))
        commitment, proof, partial = disclose(note=_note(blinding=2))
        forged = DisclosureProof(good.proof.proof, proof.public_signals, proof.mask)
        bad = DisclosureSubmission(commitment, forged, partial)

        with pytest.raises(VerificationFailed):
            service.batch_submit_disclosure_proofs(OWNER, [good, bad])
        assert service.get_disclosure(good.commitment) is None
        assert service.get_disclosure(commitment) is None

    def test_unknown_commitment(self, service, disclose):
        items = [DisclosureSubmission(*disclose(insert=False))]
        with pytest.raises(CommitmentNotFound):
            service.batch_submit_disclosure_proofs(OWNER, items)

    def test_duplicate_commitment_hits_spacing(self, service, disclose):
        service.set_audit_policy(OWNER, [AccountAuditor(AUDITOR)], max_frequency=5)
        item = DisclosureSubmission(*disclose())
        with pytest.raises(DisclosureFrequencyExceeded):
            service.batch_submit_disclosure_proofs(OWNER, [item, item])
        assert service.get_disclosure(item.commitment) is None
