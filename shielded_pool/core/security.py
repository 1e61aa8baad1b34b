"""
Randomness and hash-to-scalar utilities.

RandomnessSource is fork-safe: a child process re-seeds before drawing, so
parent and child never share blinding factors.
"""

import hashlib
import os
import secrets
from typing import Iterable, List

from .config import FIELD_MODULUS
from .field import FieldElement


# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Example:
        >>> rng = RandomnessSource()
        >>> blinding = rng.get_random_field_element()
    """

    def __init__(self):
        """Initialize randomness source with fork detection."""
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _check_fork(self) -> None:
        if os.getpid() != self._pid:
            self.__init__()

    def get_random_scalar(self, max_value: int) -> int:
        """
        Get random scalar in [0, max_value).

        Args:
            max_value: Upper bound (exclusive)

        Returns:
            Random scalar in [0, max_value)
        """
        self._check_fork()
        return self._rng.randrange(0, max_value)

    def get_random_bytes(self, n: int) -> bytes:
        self._check_fork()
        return secrets.token_bytes(n)

    def get_random_field_element(self) -> FieldElement:
        """Random non-zero element of the BN254 scalar field."""
        self._check_fork()
        return FieldElement(self._rng.randrange(1, FIELD_MODULUS))


# ============================================================================
# HASH FUNCTIONS
# ============================================================================


def hash_to_scalar(data: bytes, max_value: int, domain_sep: bytes = b"") -> int:
    """
    Hash data to scalar in [0, max_value) with domain separation.

    Args:
        data: Data to hash (must be non-empty)
        max_value: Maximum value (exclusive, must be > 1)
        domain_sep: Optional domain separator

    Returns:
        Scalar in [0, max_value)

    Raises:
        ValueError: If inputs are invalid
        TypeError: If inputs are wrong type

    Security Note:
        A 512-bit BLAKE2b digest is reduced, so the modulo bias for a
        254-bit max_value is negligible.
    """
    if not isinstance(data, bytes):
        raise TypeError(f"data must be bytes, got {type(data)}")
    if not data:
        raise ValueError("Data cannot be empty")
    if max_value <= 1:
        raise ValueError(f"max_value must be > 1, got {max_value}")

    h = hashlib.blake2b(digest_size=64)
    h.update(len(domain_sep).to_bytes(4, "big"))
    h.update(domain_sep)
    h.update(data)
    return int.from_bytes(h.digest(), "big") % max_value


def derive_scalars(
    transcript: Iterable[bytes], count: int, domain_sep: bytes
) -> List[int]:
    """
    Derive `count` non-zero field scalars from a transcript.

    Each transcript item is length-prefixed before hashing, so distinct
    item splits never collide. The same transcript always yields the same
    scalars, independent of evaluation order.

    Args:
        transcript: Byte strings binding the scalars to their context
        count: Number of scalars to derive
        domain_sep: Domain separator

    Returns:
        List of scalars in [1, FIELD_MODULUS)
    """
    h = hashlib.blake2b(digest_size=64)
    for item in transcript:
        h.update(len(item).to_bytes(8, "big"))
        h.update(item)
    seed = h.digest()

    scalars = []
    for index in range(count):
        counter = 0
        while True:
            data = seed + index.to_bytes(4, "big") + counter.to_bytes(4, "big")
            scalar = hash_to_scalar(data, FIELD_MODULUS, domain_sep)
            if scalar != 0:
                break
            counter += 1
        scalars.append(scalar)
    return scalars
