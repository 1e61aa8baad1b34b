"""Pure-Python Poseidon permutation."""

from __future__ import annotations

from typing import List, Sequence

from ..config import FIELD_MODULUS, POSEIDON_ALPHA
from .hasher import PoseidonHasher
from .params import PoseidonParams


class PortablePoseidonHasher(PoseidonHasher):
    """Reference backend using Python integers."""

    name = "portable"

    def permute(self, state: Sequence[int], params: PoseidonParams) -> List[int]:
        p = FIELD_MODULUS
        t = params.width
        constants = params.round_constants
        half_full = params.full_rounds // 2
        partial_end = half_full + params.partial_rounds
        state = list(state)

        for r in range(params.total_rounds):
            offset = r * t
            state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]
            if r < half_full or r >= partial_end:
                state = [pow(s, POSEIDON_ALPHA, p) for s in state]
            else:
                state[0] = pow(state[0], POSEIDON_ALPHA, p)
            state = [sum(m * s for m, s in zip(row, state)) % p for row in params.mds]

        return state
