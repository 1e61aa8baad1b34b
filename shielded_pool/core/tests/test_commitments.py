"""Tests for note commitments, nullifiers and owner hashes."""

import cbor2
import pytest

from shielded_pool.core.commitments import (
    CommitmentService,
    Note,
    NullifierService,
    hash_owner_pubkey,
)
from shielded_pool.core.exceptions import StructuralError
from shielded_pool.core.field import ZERO, FieldElement


@pytest.fixture
def commitments(hasher):
    return CommitmentService(hasher)


@pytest.fixture
def nullifiers(hasher):
    return NullifierService(hasher)


def test_commitment_is_hash_4(commitments, hasher):
    owner, blinding = FieldElement(12345), FieldElement(67890)
    expected = hasher.hash_4(FieldElement(1000), FieldElement(0), owner, blinding)
    assert commitments.create_commitment(1000, 0, owner, blinding) == expected


def test_commitment_deterministic_and_nonzero(commitments):
    owner, blinding = FieldElement(12345), FieldElement(67890)
    first = commitments.create_commitment(1000, 0, owner, blinding)
    second = commitments.create_commitment(1000, 0, owner, blinding)
    assert first == second
    assert not first.is_zero()


def test_blinding_hides_value(commitments):
    owner = FieldElement(7)
    assert commitments.create_commitment(
        100, 0, owner, FieldElement(1)
    ) != commitments.create_commitment(100, 0, owner, FieldElement(2))


@pytest.mark.parametrize(
    "value, asset_id",
    [(101, 0), (100, 1)],
)
def test_commitment_binds_value_and_asset(commitments, value, asset_id):
    owner, blinding = FieldElement(7), FieldElement(9)
    base = commitments.create_commitment(100, 0, owner, blinding)
    assert commitments.create_commitment(value, asset_id, owner, blinding) != base


def test_value_must_fit_u64(commitments):
    with pytest.raises(ValueError):
        commitments.create_commitment(1 << 64, 0, ZERO, ZERO)


def test_nullifier_is_hash_2(nullifiers, hasher):
    commitment, key = FieldElement(5), FieldElement(6)
    assert nullifiers.compute_nullifier(commitment, key) == hasher.hash_2(commitment, key)


def test_distinct_keys_give_distinct_nullifiers(nullifiers):
    commitment = FieldElement(5)
    assert nullifiers.compute_nullifier(
        commitment, FieldElement(1)
    ) != nullifiers.compute_nullifier(commitment, FieldElement(2))


def test_owner_hash(hasher):
    pk = FieldElement(424242)
    assert hash_owner_pubkey(pk, hasher) == hasher.hash_2(pk, ZERO)
    assert hash_owner_pubkey(pk, hasher) != pk


class TestNote:
    def test_commitment_matches_service(self, commitments, hasher):
        note = Note(50, 3, FieldElement(11), FieldElement(13))
        assert note.commitment(hasher) == commitments.create_commitment(
            50, 3, FieldElement(11), FieldElement(13)
        )

    def test_random_blinding_is_nonzero_and_fresh(self):
        first = Note.random(1, 0, FieldElement(1))
        second = Note.random(1, 0, FieldElement(1))
        assert not first.blinding.is_zero()
        assert first.blinding != second.blinding

    def test_cbor_encoding(self):
        note = Note(50, 3, FieldElement(11), FieldElement(13))
        assert Note.from_bytes(note.to_bytes()) == note

    def test_rejects_non_map(self):
        with pytest.raises(StructuralError):
            Note.from_bytes(cbor2.dumps([1, 2, 3]))

    def test_rejects_missing_field(self):
        with pytest.raises(StructuralError, match="missing"):
            Note.from_bytes(cbor2.dumps({"version": 1, "value": 5}))

    def test_rejects_unknown_version(self):
        data = cbor2.loads(Note(1, 0, ZERO, ZERO).to_bytes())
        data["version"] = 2
        with pytest.raises(StructuralError):
            Note.from_bytes(cbor2.dumps(data))
