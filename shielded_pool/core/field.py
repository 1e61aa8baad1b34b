"""
BN254 scalar field element, the universal wire and storage representation.

Encoding is 32 bytes little-endian, always reduced modulo the field order.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import FIELD_ELEMENT_BYTES, FIELD_MODULUS
from .exceptions import InvalidFieldElement

U64_MAX = (1 << 64) - 1


@dataclass(frozen=True, order=True)
class FieldElement:
    """
    Element of the BN254 scalar field.

    Attributes:
        value: Canonical integer in [0, FIELD_MODULUS)

    Example:
        >>> fe = FieldElement.from_u64(42)
        >>> FieldElement.from_bytes(fe.to_bytes()) == fe
        True
    """

    value: int

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError(f"value must be int, got {type(self.value)}")
        if not 0 <= self.value < FIELD_MODULUS:
            object.__setattr__(self, "value", self.value % FIELD_MODULUS)

    @classmethod
    def from_u64(cls, value: int) -> "FieldElement":
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"value does not fit in u64: {value}")
        return cls(value)

    @classmethod
    def from_bytes(cls, data: bytes) -> "FieldElement":
        """Decode 32 little-endian bytes, reducing modulo the field order."""
        if len(data) != FIELD_ELEMENT_BYTES:
            raise InvalidFieldElement(
                f"field element must be {FIELD_ELEMENT_BYTES} bytes, got {len(data)}"
            )
        return cls(int.from_bytes(data, "little"))

    @classmethod
    def from_be_bytes(cls, data: bytes) -> "FieldElement":
        """Decode 32 big-endian bytes, reducing modulo the field order."""
        if len(data) != FIELD_ELEMENT_BYTES:
            raise InvalidFieldElement(
                f"field element must be {FIELD_ELEMENT_BYTES} bytes, got {len(data)}"
            )
        return cls(int.from_bytes(data, "big"))

    def to_bytes(self) -> bytes:
        return self.value.to_bytes(FIELD_ELEMENT_BYTES, "little")

    def to_be_bytes(self) -> bytes:
        return self.value.to_bytes(FIELD_ELEMENT_BYTES, "big")

    def is_zero(self) -> bool:
        return self.value == 0

    def hex(self) -> str:
        return self.to_bytes().hex()

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"FieldElement(0x{self.value:064x})"


ZERO = FieldElement(0)
ONE = FieldElement(1)
