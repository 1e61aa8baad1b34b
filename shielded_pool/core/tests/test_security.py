"""
Unit tests for security utilities module.

Tests randomness and hash-to-scalar derivation.
"""

import os

import pytest

from shielded_pool.core import security
from shielded_pool.core.config import FIELD_MODULUS


class TestRandomnessSource:
    """Test cryptographically secure randomness source."""

    def test_init(self):
        rng = security.RandomnessSource()
        assert rng._pid == os.getpid()
        assert rng._rng is not None

    def test_get_random_scalar(self):
        rng = security.RandomnessSource()
        scalar = rng.get_random_scalar(1000)
        assert 0 <= scalar < 1000

    def test_get_random_bytes(self):
        rng = security.RandomnessSource()
        assert len(rng.get_random_bytes(32)) == 32

    def test_random_field_element_nonzero(self):
        rng = security.RandomnessSource()
        for _ in range(10):
            fe = rng.get_random_field_element()
            assert 0 < fe.value < FIELD_MODULUS

    def test_fork_detection_reseeds(self, monkeypatch):
        rng = security.RandomnessSource()
        child_pid = rng._pid + 1
        monkeypatch.setattr(security.os, "getpid", lambda: child_pid)
        rng.get_random_scalar(10)
        assert rng._pid == child_pid


class TestHashToScalar:
    def test_deterministic(self):
        assert security.hash_to_scalar(b"data", FIELD_MODULUS) == security.hash_to_scalar(
            b"data", FIELD_MODULUS
        )

    def test_in_range(self):
        assert 0 <= security.hash_to_scalar(b"data", 17) < 17

    def test_domain_separation(self):
        a = security.hash_to_scalar(b"data", FIELD_MODULUS, b"A")
        b = security.hash_to_scalar(b"data", FIELD_MODULUS, b"B")
        assert a != b

    def test_domain_length_prefixed(self):
        a = security.hash_to_scalar(b"Bdata", FIELD_MODULUS, b"A")
        b = security.hash_to_scalar(b"data", FIELD_MODULUS, b"AB")
        assert a != b

    def test_rejects_empty_data(self):
        with pytest.raises(ValueError, match="empty"):
            security.hash_to_scalar(b"", FIELD_MODULUS)

    def test_rejects_non_bytes(self):
        with pytest.raises(TypeError):
            security.hash_to_scalar("data", FIELD_MODULUS)

    def test_rejects_small_modulus(self):
        with pytest.raises(ValueError):
            security.hash_to_scalar(b"data", 1)


class TestDeriveScalars:
    def test_deterministic_and_nonzero(self):
        first = security.derive_scalars([b"a", b"b"], 3, b"D")
        assert first == security.derive_scalars([b"a", b"b"], 3, b"D")
        assert len(first) == 3
        assert all(0 < s < FIELD_MODULUS for s in first)
        assert len(set(first)) == 3

    def test_item_boundaries_matter(self):
        assert security.derive_scalars([b"ab", b"c"], 1, b"D") != security.derive_scalars(
            [b"a", b"bc"], 1, b"D"
        )

    def test_transcript_binding(self):
        assert security.derive_scalars([b"x"], 2, b"D") != security.derive_scalars(
            [b"y"], 2, b"D"
        )
