"""
Compressed BN254 point serialization for Groth16 artifacts.

Layout follows the arkworks compressed encoding used by the proving tooling:

- Fq: 32 bytes little-endian.
- G1: x as Fq; flags in the top two bits of the last byte.
- G2: x.c0 then x.c1 (64 bytes); flags in the top two bits of the last byte.
- Flags: 0x80 = y is the larger of (y, -y), 0x40 = point at infinity.
  Fq2 elements are ordered by c1 first, then c0.
- Proof: A (G1) || B (G2) || C (G1) = 128 bytes.
- VerifyingKey: alpha (G1) || beta (G2) || gamma (G2) || delta (G2)
  || u64 LE count || count x G1 (the IC points).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from py_ecc.optimized_bn128 import optimized_curve as curve

from ..exceptions import DeserializationError

P = curve.field_modulus
FQ = curve.FQ
FQ2 = curve.FQ2

G1_BYTES = 32
G2_BYTES = 64
PROOF_BYTES = G1_BYTES + G2_BYTES + G1_BYTES

_FLAG_NEGATIVE = 0x80
_FLAG_INFINITY = 0x40
_FLAG_MASK = _FLAG_NEGATIVE | _FLAG_INFINITY


# ============================================================================
# FIELD HELPERS
# ============================================================================


def _int(value) -> int:
    return value if isinstance(value, int) else value.n


def _fq2_ints(value) -> Tuple[int, int]:
    c0, c1 = value.coeffs
    return _int(c0), _int(c1)


def _sqrt_fq(a: int) -> Optional[int]:
    # p = 3 mod 4
    root = pow(a, (P + 1) // 4, P)
    return root if root * root % P == a % P else None


def _sqrt_fq2(a0: int, a1: int) -> Optional[Tuple[int, int]]:
    """Square root in Fq[u]/(u^2 + 1) via the norm map."""
    a0 %= P
    a1 %= P
    if a1 == 0:
        root = _sqrt_fq(a0)
        if root is not None:
            return root, 0
        root = _sqrt_fq(-a0 % P)
        return (0, root) if root is not None else None

    alpha = _sqrt_fq((a0 * a0 + a1 * a1) % P)
    if alpha is None:
        return None
    inv_two = pow(2, -1, P)
    delta = (a0 + alpha) * inv_two % P
    x0 = _sqrt_fq(delta)
    if x0 is None:
        delta = (a0 - alpha) * inv_two % P
        x0 = _sqrt_fq(delta)
        if x0 is None:
            return None
    x1 = a1 * pow(2 * x0, -1, P) % P
    if (x0 * x0 - x1 * x1) % P != a0 or 2 * x0 * x1 % P != a1:
        return None
    return x0, x1


def _fq_is_larger(y: int) -> bool:
    return y > (P - y) % P


def _fq2_is_larger(y0: int, y1: int) -> bool:
    n0, n1 = (P - y0) % P, (P - y1) % P
    if y1 != n1:
        return y1 > n1
    return y0 > n0


def _split_flags(data: bytes) -> Tuple[bytes, int]:
    flags = data[-1] & _FLAG_MASK
    if flags == _FLAG_MASK:
        raise DeserializationError("point has both infinity and sign flags set")
    return data[:-1] + bytes([data[-1] & ~_FLAG_MASK & 0xFF]), flags


def _read_fq(data: bytes) -> int:
    value = int.from_bytes(data, "little")
    if value >= P:
        raise DeserializationError("coordinate is not a canonical field element")
    return value


# ============================================================================
# G1 / G2
# ============================================================================


def encode_g1(point) -> bytes:
    if curve.is_inf(point):
        return bytes(G1_BYTES - 1) + bytes([_FLAG_INFINITY])
    x, y = curve.normalize(point)
    out = bytearray(_int(x).to_bytes(G1_BYTES, "little"))
    if _fq_is_larger(_int(y)):
        out[-1] |= _FLAG_NEGATIVE
    return bytes(out)


def decode_g1(data: bytes):
    if len(data) != G1_BYTES:
        raise DeserializationError(f"G1 point must be {G1_BYTES} bytes, got {len(data)}")
    body, flags = _split_flags(data)
    if flags == _FLAG_INFINITY:
        if any(body):
            raise DeserializationError("infinity point with non-zero coordinate")
        return curve.Z1
    x = _read_fq(body)
    y = _sqrt_fq((pow(x, 3, P) + 3) % P)
    if y is None:
        raise DeserializationError("G1 x-coordinate is not on the curve")
    if _fq_is_larger(y) != bool(flags & _FLAG_NEGATIVE):
        y = (P - y) % P
    return (FQ(x), FQ(y), FQ.one())


def encode_g2(point) -> bytes:
    if curve.is_inf(point):
        return bytes(G2_BYTES - 1) + bytes([_FLAG_INFINITY])
    x, y = curve.normalize(point)
    x0, x1 = _fq2_ints(x)
    out = bytearray(x0.to_bytes(32, "little") + x1.to_bytes(32, "little"))
    if _fq2_is_larger(*_fq2_ints(y)):
        out[-1] |= _FLAG_NEGATIVE
    return bytes(out)


def decode_g2(data: bytes):
    if len(data) != G2_BYTES:
        raise DeserializationError(f"G2 point must be {G2_BYTES} bytes, got {len(data)}")
    body, flags = _split_flags(data)
    if flags == _FLAG_INFINITY:
        if any(body):
            raise DeserializationError("infinity point with non-zero coordinate")
        return curve.Z2
    x = FQ2([_read_fq(body[:32]), _read_fq(body[32:])])
    rhs0, rhs1 = _fq2_ints(x * x * x + curve.b2)
    root = _sqrt_fq2(rhs0, rhs1)
    if root is None:
        raise DeserializationError("G2 x-coordinate is not on the curve")
    y0, y1 = root
    if _fq2_is_larger(y0, y1) != bool(flags & _FLAG_NEGATIVE):
        y0, y1 = (P - y0) % P, (P - y1) % P
    point = (x, FQ2([y0, y1]), FQ2.one())
    if not curve.is_inf(curve.multiply(point, curve.curve_order)):
        raise DeserializationError("G2 point is not in the prime-order subgroup")
    return point


# ============================================================================
# PROOF / VERIFYING KEY
# ============================================================================


@dataclass(frozen=True)
class Proof:
    """Groth16 proof (A in G1, B in G2, C in G1)."""

    a: tuple
    b: tuple
    c: tuple

    def to_bytes(self) -> bytes:
        return encode_g1(self.a) + encode_g2(self.b) + encode_g1(self.c)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        if len(data) != PROOF_BYTES:
            raise DeserializationError(
                f"proof must be {PROOF_BYTES} bytes, got {len(data)}"
            )
        return cls(
            a=decode_g1(data[:G1_BYTES]),
            b=decode_g2(data[G1_BYTES:G1_BYTES + G2_BYTES]),
            c=decode_g1(data[G1_BYTES + G2_BYTES:]),
        )


@dataclass(frozen=True)
class VerifyingKey:
    """
    Groth16 verifying key.

    Attributes:
        alpha_g1, beta_g2, gamma_g2, delta_g2: Setup elements
        ic: IC points; ic[0] is the constant term, one more per public input
    """

    alpha_g1: tuple
    beta_g2: tuple
    gamma_g2: tuple
    delta_g2: tuple
    ic: Tuple[tuple, ...]

    @property
    def num_public_inputs(self) -> int:
        return len(self.ic) - 1

    def to_bytes(self) -> bytes:
        return (
            encode_g1(self.alpha_g1)
            + encode_g2(self.beta_g2)
            + encode_g2(self.gamma_g2)
            + encode_g2(self.delta_g2)
            + len(self.ic).to_bytes(8, "little")
            + b"".join(encode_g1(point) for point in self.ic)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "VerifyingKey":
        header = G1_BYTES + 3 * G2_BYTES
        if len(data) < header + 8:
            raise DeserializationError(f"verifying key too short: {len(data)} bytes")
        offset = 0

        def take(size: int) -> bytes:
            nonlocal offset
            chunk = data[offset:offset + size]
            offset += size
            return chunk

        alpha = decode_g1(take(G1_BYTES))
        beta = decode_g2(take(G2_BYTES))
        gamma = decode_g2(take(G2_BYTES))
        delta = decode_g2(take(G2_BYTES))
        count = int.from_bytes(take(8), "little")
        if count < 1 or len(data) != header + 8 + count * G1_BYTES:
            raise DeserializationError(
                f"verifying key declares {count} IC points for {len(data)} bytes"
            )
        ic: List[tuple] = [decode_g1(take(G1_BYTES)) for _ in range(count)]
        return cls(alpha, beta, gamma, delta, tuple(ic))
