"""Poseidon permutation on gmpy2 multi-precision integers."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import gmpy2
from gmpy2 import mpz

from ..config import FIELD_MODULUS, POSEIDON_ALPHA
from .hasher import PoseidonHasher
from .params import PoseidonParams

_P = mpz(FIELD_MODULUS)


class Gmpy2PoseidonHasher(PoseidonHasher):
    """Accelerated backend; output is byte-identical to the portable one."""

    name = "gmpy2"

    def __init__(self) -> None:
        self._converted: Dict[int, Tuple[Tuple[mpz, ...], Tuple[Tuple[mpz, ...], ...]]] = {}

    def _constants(self, params: PoseidonParams):
        cached = self._converted.get(params.width)
        if cached is None:
            cached = (
                tuple(mpz(c) for c in params.round_constants),
                tuple(tuple(mpz(m) for m in row) for row in params.mds),
            )
            self._converted[params.width] = cached
        return cached

    def permute(self, state: Sequence[int], params: PoseidonParams) -> List[int]:
        constants, mds = self._constants(params)
        t = params.width
        half_full = params.full_rounds // 2
        partial_end = half_full + params.partial_rounds
        current = [mpz(s) for s in state]

        for r in range(params.total_rounds):
            offset = r * t
            current = [
                gmpy2.f_mod(s + constants[offset + i], _P) for i, s in enumerate(current)
            ]
            if r < half_full or r >= partial_end:
                current = [gmpy2.powmod(s, POSEIDON_ALPHA, _P) for s in current]
            else:
                current[0] = gmpy2.powmod(current[0], POSEIDON_ALPHA, _P)
            current = [
                gmpy2.f_mod(sum(m * s for m, s in zip(row, current)), _P) for row in mds
            ]

        return [int(s) for s in current]
