"""
Selective disclosure mask.

Bitmap layout (low nibble):

    bit 0 (0b0001)  reveal value
    bit 1 (0b0010)  reveal owner
    bit 2 (0b0100)  reveal blinding   (never allowed)
    bit 3 (0b1000)  reveal asset_id
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import InvalidDisclosureMask

VALUE_BIT = 0b0001
OWNER_BIT = 0b0010
BLINDING_BIT = 0b0100
ASSET_ID_BIT = 0b1000
MASK_BITS = VALUE_BIT | OWNER_BIT | BLINDING_BIT | ASSET_ID_BIT


@dataclass(frozen=True)
class DisclosureMask:
    """Which note fields a disclosure reveals."""

    disclose_value: bool = False
    disclose_owner: bool = False
    disclose_blinding: bool = False
    disclose_asset_id: bool = False

    @classmethod
    def all(cls) -> "DisclosureMask":
        """Every field except the blinding factor."""
        return cls(disclose_value=True, disclose_owner=True, disclose_asset_id=True)

    @classmethod
    def only_value(cls) -> "DisclosureMask":
        return cls(disclose_value=True)

    @classmethod
    def value_and_asset(cls) -> "DisclosureMask":
        return cls(disclose_value=True, disclose_asset_id=True)

    @classmethod
    def from_bitmap(cls, bitmap: int) -> "DisclosureMask":
        """
        Decode a bitmap without validating it.

        Raises:
            InvalidDisclosureMask: If bits outside the low nibble are set
        """
        if bitmap < 0 or bitmap & ~MASK_BITS:
            raise InvalidDisclosureMask(f"unknown mask bits: {bitmap:#04x}")
        return cls(
            disclose_value=bool(bitmap & VALUE_BIT),
            disclose_owner=bool(bitmap & OWNER_BIT),
            disclose_blinding=bool(bitmap & BLINDING_BIT),
            disclose_asset_id=bool(bitmap & ASSET_ID_BIT),
        )

    def to_bitmap(self) -> int:
        return (
            (VALUE_BIT if self.disclose_value else 0)
            | (OWNER_BIT if self.disclose_owner else 0)
            | (BLINDING_BIT if self.disclose_blinding else 0)
            | (ASSET_ID_BIT if self.disclose_asset_id else 0)
        )

    @property
    def disclosed_field_count(self) -> int:
        return bin(self.to_bitmap()).count("1")

    def validate(self) -> None:
        """
        Raises:
            InvalidDisclosureMask: If the blinding bit is set or nothing is revealed
        """
        if self.disclose_blinding:
            raise InvalidDisclosureMask(
                "mask reveals the blinding factor, which breaks commitment hiding"
            )
        if not (self.disclose_value or self.disclose_owner or self.disclose_asset_id):
            raise InvalidDisclosureMask("mask must reveal value, owner or asset_id")


def validate_mask(bitmap: int) -> DisclosureMask:
    """Decode and validate a bitmap in one step."""
    mask = DisclosureMask.from_bitmap(bitmap)
    mask.validate()
    return mask
