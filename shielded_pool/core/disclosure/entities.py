"""Disclosure workflow records: pending requests, stored proofs, audit trail."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

import cbor2

from ..exceptions import StructuralError
from .policy import AccountId

MAX_REASON_BYTES = 256
MAX_EVIDENCE_BYTES = 1024
MAX_DISCLOSURE_TYPE_BYTES = 64

DISCLOSURE_TYPE_VERIFIED = "verified_disclosure"
DISCLOSURE_TYPE_SELECTIVE = "selective_disclosure"

_TRAIL_DOMAIN = b"SHIELDED_POOL_AUDIT_TRAIL_V1"


@dataclass(frozen=True)
class DisclosureRequest:
    """Pending request from `auditor` to `target`; consumed on approve or reject."""

    auditor: AccountId
    target: AccountId
    requested_at: int
    reason: bytes = b""
    evidence: Optional[bytes] = None

    def __post_init__(self) -> None:
        if len(self.reason) > MAX_REASON_BYTES:
            raise StructuralError(f"reason exceeds {MAX_REASON_BYTES} bytes")
        if self.evidence is not None and len(self.evidence) > MAX_EVIDENCE_BYTES:
            raise StructuralError(f"evidence exceeds {MAX_EVIDENCE_BYTES} bytes")

    @property
    def has_evidence(self) -> bool:
        return self.evidence is not None


@dataclass(frozen=True)
class DisclosureRecord:
    """Verified disclosure kept per commitment."""

    commitment: bytes
    proof: bytes
    disclosed_data: bytes
    block: int


@dataclass(frozen=True)
class AuditTrail:
    """Append-only log entry for a disclosure seen by an auditor."""

    account: AccountId
    auditor: AccountId
    commitment: bytes
    timestamp: int
    disclosure_type: str
    trail_hash: bytes

    @staticmethod
    def compute_hash(
        account: AccountId,
        auditor: AccountId,
        commitment: bytes,
        timestamp: int,
        disclosure_type: str,
        sequence: int,
    ) -> bytes:
        """
        BLAKE2b-256 over a canonical CBOR encoding of the entry.

        `sequence` is the trail's position in the log, which keeps hashes
        unique for otherwise identical entries.
        """
        payload = cbor2.dumps(
            [account, auditor, commitment, timestamp, disclosure_type, sequence],
            canonical=True,
        )
        h = hashlib.blake2b(digest_size=32)
        h.update(len(_TRAIL_DOMAIN).to_bytes(4, "big"))
        h.update(_TRAIL_DOMAIN)
        h.update(payload)
        return h.digest()

    @classmethod
    def create(
        cls,
        account: AccountId,
        auditor: AccountId,
        commitment: bytes,
        timestamp: int,
        disclosure_type: str,
        sequence: int,
    ) -> "AuditTrail":
        if len(disclosure_type.encode()) > MAX_DISCLOSURE_TYPE_BYTES:
            raise StructuralError(
                f"disclosure type exceeds {MAX_DISCLOSURE_TYPE_BYTES} bytes"
            )
        trail_hash = cls.compute_hash(
            account, auditor, commitment, timestamp, disclosure_type, sequence
        )
        return cls(account, auditor, commitment, timestamp, disclosure_type, trail_hash)

    def verify_hash(self, expected: bytes) -> bool:
        return self.trail_hash == expected
