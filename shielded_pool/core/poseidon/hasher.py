"""Poseidon hasher capability shared by all backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from ..config import POSEIDON_SUPPORTED_ARITIES
from ..field import FieldElement
from .params import PoseidonParams, poseidon_params


class PoseidonHasher(ABC):
    """
    Poseidon hash over BN254 with circomlib-compatible parameters.

    Backends only implement the permutation; input framing (capacity element
    first, output taken from state[0]) lives here so every backend agrees.
    Hashing is order-sensitive: hash_2(a, b) != hash_2(b, a) in general.
    """

    name: str = "abstract"

    @abstractmethod
    def permute(self, state: Sequence[int], params: PoseidonParams) -> List[int]:
        """Apply the Poseidon permutation to a full state of canonical ints."""

    def hash(self, inputs: Sequence[FieldElement]) -> FieldElement:
        if len(inputs) not in POSEIDON_SUPPORTED_ARITIES:
            raise ValueError(f"Unsupported Poseidon arity: {len(inputs)}")
        params = poseidon_params(len(inputs) + 1)
        state = [0] + [element.value for element in inputs]
        return FieldElement(self.permute(state, params)[0])

    def hash_1(self, a: FieldElement) -> FieldElement:
        return self.hash([a])

    def hash_2(self, a: FieldElement, b: FieldElement) -> FieldElement:
        return self.hash([a, b])

    def hash_4(
        self,
        a: FieldElement,
        b: FieldElement,
        c: FieldElement,
        d: FieldElement,
    ) -> FieldElement:
        return self.hash([a, b, c, d])

    def hash_bytes_2(self, left: bytes, right: bytes) -> bytes:
        """hash_2 over 32-byte little-endian encodings."""
        return self.hash_2(
            FieldElement.from_bytes(left), FieldElement.from_bytes(right)
        ).to_bytes()
