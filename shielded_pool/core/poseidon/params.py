"""
Poseidon parameter generation for the BN254 scalar field.

Round constants and the MDS matrix are derived from the Grain LFSR exactly as
the reference parameter script does, so the output matches circomlib's
Poseidon (x^5 S-box, 8 full rounds, width-dependent partial rounds).

Parameters are derived once per width and cached; derivation is pure, so
concurrent first calls converge on identical values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Tuple

from ..config import (
    FIELD_BITS,
    FIELD_MODULUS,
    POSEIDON_FULL_ROUNDS,
    POSEIDON_PARTIAL_ROUNDS,
)

logger = logging.getLogger(__name__)

# Grain LFSR register width and warm-up length
_GRAIN_BITS = 80
_GRAIN_WARMUP = 160

# Field type 1 = prime field, S-box type 0 = x^alpha
_FIELD_TYPE = 1
_SBOX_TYPE = 0


@dataclass(frozen=True)
class PoseidonParams:
    """
    Poseidon permutation parameters for one state width.

    Attributes:
        width: State size t (number of inputs + 1)
        full_rounds: Total full rounds (split evenly before/after partial rounds)
        partial_rounds: Partial rounds
        round_constants: (full_rounds + partial_rounds) * width constants
        mds: width x width Cauchy matrix, row-major
    """

    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds


def _initial_state(width: int, full_rounds: int, partial_rounds: int) -> int:
    bits = (
        format(_FIELD_TYPE, "02b")
        + format(_SBOX_TYPE, "04b")
        + format(FIELD_BITS, "012b")
        + format(width, "012b")
        + format(full_rounds, "010b")
        + format(partial_rounds, "010b")
        + "1" * 30
    )
    assert len(bits) == _GRAIN_BITS
    # Bit i of the register holds the i-th bit of the sequence
    state = 0
    for i, bit in enumerate(bits):
        if bit == "1":
            state |= 1 << i
    return state


def _grain_bits(width: int, full_rounds: int, partial_rounds: int) -> Iterator[int]:
    state = _initial_state(width, full_rounds, partial_rounds)

    def step() -> int:
        nonlocal state
        new_bit = (
            (state >> 62) ^ (state >> 51) ^ (state >> 38)
            ^ (state >> 23) ^ (state >> 13) ^ state
        ) & 1
        state = (state >> 1) | (new_bit << (_GRAIN_BITS - 1))
        return new_bit

    for _ in range(_GRAIN_WARMUP):
        step()

    # Bits are consumed in pairs: emit the second bit when the first is 1
    while True:
        first = step()
        second = step()
        if first == 1:
            yield second


def _take_int(bits: Iterator[int], n: int) -> int:
    value = 0
    for _ in range(n):
        value = (value << 1) | next(bits)
    return value


def _round_constants(bits: Iterator[int], count: int) -> Tuple[int, ...]:
    constants = []
    for _ in range(count):
        candidate = _take_int(bits, FIELD_BITS)
        while candidate >= FIELD_MODULUS:
            candidate = _take_int(bits, FIELD_BITS)
        constants.append(candidate)
    return tuple(constants)


def _cauchy_mds(bits: Iterator[int], width: int) -> Tuple[Tuple[int, ...], ...]:
    p = FIELD_MODULUS
    while True:
        draws = [_take_int(bits, FIELD_BITS) % p for _ in range(2 * width)]
        while len(set(draws)) != len(draws):
            draws = [_take_int(bits, FIELD_BITS) % p for _ in range(2 * width)]
        xs, ys = draws[:width], draws[width:]
        if any((x + y) % p == 0 for x in xs for y in ys):
            continue
        return tuple(
            tuple(pow(x + y, -1, p) for y in ys)
            for x in xs
        )


@lru_cache(maxsize=None)
def poseidon_params(width: int) -> PoseidonParams:
    """
    Derive (and cache) Poseidon parameters for a state width.

    Args:
        width: State size t, between 2 and 17

    Returns:
        PoseidonParams for that width

    Raises:
        ValueError: If the width has no partial-round count
    """
    index = width - 2
    if not 0 <= index < len(POSEIDON_PARTIAL_ROUNDS):
        raise ValueError(f"Unsupported Poseidon width: {width}")

    partial_rounds = POSEIDON_PARTIAL_ROUNDS[index]
    bits = _grain_bits(width, POSEIDON_FULL_ROUNDS, partial_rounds)
    constants = _round_constants(bits, (POSEIDON_FULL_ROUNDS + partial_rounds) * width)
    mds = _cauchy_mds(bits, width)

    logger.debug(
        "Derived Poseidon parameters: t=%d R_F=%d R_P=%d",
        width,
        POSEIDON_FULL_ROUNDS,
        partial_rounds,
    )
    return PoseidonParams(
        width=width,
        full_rounds=POSEIDON_FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=constants,
        mds=mds,
    )
