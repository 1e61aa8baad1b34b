"""
Public signals of the disclosure circuit.

Compact layout (76 bytes):

    commitment(32) || revealed_value(u64 LE) || revealed_asset_id(u32 LE)
    || revealed_owner_hash(32)

The 97-byte wire variant is the compact layout zero-padded to the circuit's
fixed width. Fields the mask does not reveal are zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ..config import FIELD_ELEMENT_BYTES, PADDED_PUBLIC_SIGNALS_BYTES, PUBLIC_SIGNALS_BYTES
from ..exceptions import InvalidPublicSignals
from ..field import FieldElement
from .mask import DisclosureMask

U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1

_ZERO_HASH = bytes(FIELD_ELEMENT_BYTES)
_PADDING = PADDED_PUBLIC_SIGNALS_BYTES - PUBLIC_SIGNALS_BYTES


@dataclass(frozen=True)
class DisclosurePublicSignals:
    """
    Values the disclosure proof commits to publicly.

    Attributes:
        commitment: Target commitment (32-byte field encoding)
        revealed_value: Value, or 0 when hidden
        revealed_asset_id: Asset id, or 0 when hidden
        revealed_owner_hash: hash_2(owner_pubkey, 0), or 32 zero bytes when hidden
    """

    commitment: bytes
    revealed_value: int = 0
    revealed_asset_id: int = 0
    revealed_owner_hash: bytes = _ZERO_HASH

    def __post_init__(self) -> None:
        if len(self.commitment) != FIELD_ELEMENT_BYTES:
            raise InvalidPublicSignals("commitment must be 32 bytes")
        if len(self.revealed_owner_hash) != FIELD_ELEMENT_BYTES:
            raise InvalidPublicSignals("owner hash must be 32 bytes")
        if not 0 <= self.revealed_value <= U64_MAX:
            raise InvalidPublicSignals(f"value does not fit in u64: {self.revealed_value}")
        if not 0 <= self.revealed_asset_id <= U32_MAX:
            raise InvalidPublicSignals(
                f"asset id does not fit in u32: {self.revealed_asset_id}"
            )

    def to_bytes(self) -> bytes:
        return (
            bytes(self.commitment)
            + self.revealed_value.to_bytes(8, "little")
            + self.revealed_asset_id.to_bytes(4, "little")
            + bytes(self.revealed_owner_hash)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DisclosurePublicSignals":
        if len(data) != PUBLIC_SIGNALS_BYTES:
            raise InvalidPublicSignals(
                f"public signals must be {PUBLIC_SIGNALS_BYTES} bytes, got {len(data)}"
            )
        return cls(
            commitment=bytes(data[0:32]),
            revealed_value=int.from_bytes(data[32:40], "little"),
            revealed_asset_id=int.from_bytes(data[40:44], "little"),
            revealed_owner_hash=bytes(data[44:76]),
        )

    def to_padded_bytes(self) -> bytes:
        return self.to_bytes() + bytes(_PADDING)

    @classmethod
    def from_padded_bytes(cls, data: bytes) -> "DisclosurePublicSignals":
        if len(data) != PADDED_PUBLIC_SIGNALS_BYTES:
            raise InvalidPublicSignals(
                f"padded public signals must be {PADDED_PUBLIC_SIGNALS_BYTES} bytes, "
                f"got {len(data)}"
            )
        if any(data[PUBLIC_SIGNALS_BYTES:]):
            raise InvalidPublicSignals("non-zero padding in public signals")
        return cls.from_bytes(data[:PUBLIC_SIGNALS_BYTES])

    @classmethod
    def from_wire(cls, data: bytes) -> "DisclosurePublicSignals":
        """Accept either the compact or the padded layout."""
        if len(data) == PADDED_PUBLIC_SIGNALS_BYTES:
            return cls.from_padded_bytes(data)
        return cls.from_bytes(data)

    def validate(self, mask: DisclosureMask) -> None:
        """
        Check that hidden fields are zeroed.

        Raises:
            InvalidPublicSignals: If a field the mask hides carries a value
        """
        if not mask.disclose_owner and self.revealed_owner_hash != _ZERO_HASH:
            raise InvalidPublicSignals("owner hash must be zero when owner is hidden")
        if not mask.disclose_value and self.revealed_value != 0:
            raise InvalidPublicSignals("value must be zero when value is hidden")
        if not mask.disclose_asset_id and self.revealed_asset_id != 0:
            raise InvalidPublicSignals("asset id must be zero when asset id is hidden")

    def to_public_inputs(self) -> List[bytes]:
        """
        Groth16 public inputs of the disclosure circuit, in circuit order:
        commitment, value, asset_id, owner_hash as 32-byte big-endian scalars.
        """
        return [
            FieldElement.from_bytes(self.commitment).to_be_bytes(),
            FieldElement(self.revealed_value).to_be_bytes(),
            FieldElement(self.revealed_asset_id).to_be_bytes(),
            FieldElement.from_bytes(self.revealed_owner_hash).to_be_bytes(),
        ]
