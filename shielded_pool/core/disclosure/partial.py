"""
Partial note revealed to an auditor.

Compact encoding: flags(1) followed by the present fields in order
value(u64 LE), owner_pubkey(32), blinding(32), asset_id(u32 LE). Flag bits
use the same positions as the disclosure mask.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..commitments import Note
from ..exceptions import InvalidDisclosureMask, StructuralError
from ..field import FieldElement
from .mask import ASSET_ID_BIT, BLINDING_BIT, OWNER_BIT, VALUE_BIT, DisclosureMask
from .signals import U32_MAX, U64_MAX


@dataclass(frozen=True)
class PartialMemoData:
    value: Optional[int] = None
    owner_pubkey: Optional[FieldElement] = None
    blinding: Optional[FieldElement] = None
    asset_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.value is not None and not 0 <= self.value <= U64_MAX:
            raise StructuralError(f"value does not fit in u64: {self.value}")
        if self.asset_id is not None and not 0 <= self.asset_id <= U32_MAX:
            raise StructuralError(f"asset id does not fit in u32: {self.asset_id}")

    @classmethod
    def from_note(cls, note: Note, mask: DisclosureMask) -> "PartialMemoData":
        """Project a note onto the fields a mask reveals."""
        if mask.disclose_asset_id and note.asset_id > U32_MAX:
            raise StructuralError(f"asset id does not fit in u32: {note.asset_id}")
        return cls(
            value=note.value if mask.disclose_value else None,
            owner_pubkey=note.owner_pubkey if mask.disclose_owner else None,
            blinding=note.blinding if mask.disclose_blinding else None,
            asset_id=note.asset_id if mask.disclose_asset_id else None,
        )

    def is_empty(self) -> bool:
        return (
            self.value is None
            and self.owner_pubkey is None
            and self.blinding is None
            and self.asset_id is None
        )

    def mask(self) -> DisclosureMask:
        """Mask implied by which fields are present."""
        return DisclosureMask(
            disclose_value=self.value is not None,
            disclose_owner=self.owner_pubkey is not None,
            disclose_blinding=self.blinding is not None,
            disclose_asset_id=self.asset_id is not None,
        )

    def validate(self) -> None:
        if self.is_empty():
            raise InvalidDisclosureMask("partial data reveals nothing")

    def to_bytes(self) -> bytes:
        out = bytearray([self.mask().to_bitmap()])
        if self.value is not None:
            out += self.value.to_bytes(8, "little")
        if self.owner_pubkey is not None:
            out += self.owner_pubkey.to_bytes()
        if self.blinding is not None:
            out += self.blinding.to_bytes()
        if self.asset_id is not None:
            out += self.asset_id.to_bytes(4, "little")
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PartialMemoData":
        """
        Raises:
            StructuralError: If the data is empty, truncated or has trailing bytes
        """
        if not data:
            raise StructuralError("partial data is empty")
        flags = data[0]
        if flags & ~(VALUE_BIT | OWNER_BIT | BLINDING_BIT | ASSET_ID_BIT):
            raise StructuralError(f"unknown partial data flags: {flags:#04x}")
        offset = 1

        def take(size: int) -> bytes:
            nonlocal offset
            if len(data) < offset + size:
                raise StructuralError("partial data truncated")
            chunk = bytes(data[offset:offset + size])
            offset += size
            return chunk

        value = int.from_bytes(take(8), "little") if flags & VALUE_BIT else None
        owner = FieldElement.from_bytes(take(32)) if flags & OWNER_BIT else None
        blinding = FieldElement.from_bytes(take(32)) if flags & BLINDING_BIT else None
        asset_id = int.from_bytes(take(4), "little") if flags & ASSET_ID_BIT else None
        if offset != len(data):
            raise StructuralError("trailing bytes after partial data")
        return cls(value=value, owner_pubkey=owner, blinding=blinding, asset_id=asset_id)
