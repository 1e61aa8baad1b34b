"""
Shared fixtures for engine tests.

Groth16 artifacts are simulated with a trapdoor: every verifying-key element
is a known multiple of the generators, so a proof (A, B, C) satisfying

    s*t = a*b + x*g + c*d,    x = k0 + sum(input_i * k_i)

can be built for any public inputs without a circuit or proving key.
"""

import random
from typing import List, Optional, Sequence

import pytest
from py_ecc.optimized_bn128 import optimized_curve as curve

from shielded_pool.core.config import FIELD_MODULUS
from shielded_pool.core.groth16.serialization import Proof, VerifyingKey
from shielded_pool.core.poseidon import PortablePoseidonHasher

R = FIELD_MODULUS


class Groth16Trapdoor:
    """Verifying key with known discrete logs, able to forge valid proofs."""

    def __init__(self, num_inputs: int, seed: int = 1):
        rng = random.Random(seed)
        self._rng = rng
        self.alpha = rng.randrange(1, R)
        self.beta = rng.randrange(1, R)
        self.gamma = rng.randrange(1, R)
        self.delta = rng.randrange(1, R)
        self.ic = [rng.randrange(1, R) for _ in range(num_inputs + 1)]
        self.num_inputs = num_inputs

    @property
    def vk(self) -> VerifyingKey:
        return VerifyingKey(
            alpha_g1=curve.multiply(curve.G1, self.alpha),
            beta_g2=curve.multiply(curve.G2, self.beta),
            gamma_g2=curve.multiply(curve.G2, self.gamma),
            delta_g2=curve.multiply(curve.G2, self.delta),
            ic=tuple(curve.multiply(curve.G1, k) for k in self.ic),
        )

    @property
    def vk_bytes(self) -> bytes:
        return self.vk.to_bytes()

    def prove(self, inputs: Sequence[int], s: Optional[int] = None, t: Optional[int] = None) -> bytes:
        """Compressed proof that verifies for `inputs` (field integers)."""
        s = s if s is not None else self._rng.randrange(1, R)
        t = t if t is not None else self._rng.randrange(1, R)
        x = (self.ic[0] + sum(v * k for v, k in zip(inputs, self.ic[1:]))) % R
        c = (s * t - self.alpha * self.beta - x * self.gamma) * pow(self.delta, -1, R) % R
        proof = Proof(
            a=curve.multiply(curve.G1, s),
            b=curve.multiply(curve.G2, t),
            c=curve.multiply(curve.G1, c),
        )
        return proof.to_bytes()

    def prove_public(self, public_inputs: Sequence[bytes]) -> bytes:
        """Proof for 32-byte big-endian public inputs."""
        return self.prove([int.from_bytes(item, "big") % R for item in public_inputs])


def encode_inputs(values: Sequence[int]) -> List[bytes]:
    return [(v % R).to_bytes(32, "big") for v in values]


@pytest.fixture
def groth16_trapdoor():
    """Factory: groth16_trapdoor(num_inputs, seed=1)."""
    return Groth16Trapdoor


@pytest.fixture
def encode_public_inputs():
    return encode_inputs


@pytest.fixture
def transfer_trapdoor() -> Groth16Trapdoor:
    return Groth16Trapdoor(num_inputs=5, seed=5)


@pytest.fixture
def disclosure_trapdoor() -> Groth16Trapdoor:
    return Groth16Trapdoor(num_inputs=4, seed=4)


@pytest.fixture
def hasher() -> PortablePoseidonHasher:
    return PortablePoseidonHasher()


@pytest.fixture(autouse=True)
def reset_hasher_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SHIELDED_POOL_HASHER", raising=False)
