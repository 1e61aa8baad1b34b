"""
Versioned verifying-key registry.

Keys are registered per (circuit, version) and never overwritten. The first
version registered for a circuit becomes active; verification without an
explicit version uses the active one. Every verification is counted per
(circuit, version).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from ..exceptions import (
    CircuitAlreadyExists,
    CircuitNotFound,
    DeserializationError,
    InvalidVerifyingKey,
    VersionNotFound,
)
from .circuits import expected_public_inputs, validate_vk_structure
from .serialization import VerifyingKey
from .verifier import Groth16Verifier

logger = logging.getLogger(__name__)


class ProofSystem(Enum):
    GROTH16 = "groth16"
    PLONK = "plonk"
    HALO2 = "halo2"


@dataclass
class VerificationStats:
    verifications: int = 0
    successes: int = 0
    failures: int = 0


@dataclass(frozen=True)
class RegisteredKey:
    circuit_id: int
    version: int
    system: ProofSystem
    data: bytes

    @property
    def num_public_inputs(self) -> int:
        return VerifyingKey.from_bytes(self.data).num_public_inputs


class VerifyingKeyRegistry:
    """In-memory verifying-key registry with per-version statistics."""

    def __init__(self) -> None:
        self._keys: Dict[int, Dict[int, RegisteredKey]] = {}
        self._active: Dict[int, int] = {}
        self._stats: Dict[Tuple[int, int], VerificationStats] = {}

    def register(
        self,
        circuit_id: int,
        version: int,
        vk_bytes: bytes,
        system: ProofSystem = ProofSystem.GROTH16,
    ) -> None:
        """
        Register a verifying key.

        Raises:
            CircuitAlreadyExists: If (circuit_id, version) is taken
            InvalidVerifyingKey: If the key is empty, too large, malformed or
                not a Groth16 key
        """
        if version in self._keys.get(circuit_id, {}):
            raise CircuitAlreadyExists(f"circuit {circuit_id} version {version} exists")
        if system is not ProofSystem.GROTH16:
            raise InvalidVerifyingKey(f"unsupported proof system: {system.value}")
        validate_vk_structure(vk_bytes)
        try:
            vk = VerifyingKey.from_bytes(vk_bytes)
        except DeserializationError as exc:
            raise InvalidVerifyingKey(f"malformed verifying key: {exc}") from exc

        expected = expected_public_inputs(circuit_id)
        if expected is not None and vk.num_public_inputs != expected:
            raise InvalidVerifyingKey(
                f"circuit {circuit_id} takes {expected} public inputs, "
                f"key has {vk.num_public_inputs}"
            )

        self._keys.setdefault(circuit_id, {})[version] = RegisteredKey(
            circuit_id, version, system, bytes(vk_bytes)
        )
        self._active.setdefault(circuit_id, version)
        logger.info("Registered verifying key for circuit %d version %d", circuit_id, version)

    def set_active_version(self, circuit_id: int, version: int) -> None:
        versions = self._keys.get(circuit_id)
        if not versions:
            raise CircuitNotFound(f"circuit {circuit_id} not registered")
        if version not in versions:
            raise VersionNotFound(f"circuit {circuit_id} has no version {version}")
        self._active[circuit_id] = version
        logger.info("Circuit %d active version set to %d", circuit_id, version)

    def get_active_version(self, circuit_id: int) -> int:
        try:
            return self._active[circuit_id]
        except KeyError:
            raise CircuitNotFound(f"circuit {circuit_id} not registered") from None

    def get(self, circuit_id: int, version: Optional[int] = None) -> RegisteredKey:
        if version is None:
            version = self.get_active_version(circuit_id)
        versions = self._keys.get(circuit_id)
        if not versions or version not in versions:
            raise CircuitNotFound(f"circuit {circuit_id} version {version} not registered")
        return versions[version]

    def versions(self, circuit_id: int) -> List[int]:
        return sorted(self._keys.get(circuit_id, {}))

    def remove(self, circuit_id: int, version: Optional[int] = None) -> None:
        """
        Remove one version (the active one if none is given).

        If the active version is removed, the highest remaining version
        becomes active.
        """
        if version is None:
            version = self.get_active_version(circuit_id)
        versions = self._keys.get(circuit_id)
        if not versions or version not in versions:
            raise CircuitNotFound(f"circuit {circuit_id} version {version} not registered")
        del versions[version]
        if not versions:
            del self._keys[circuit_id]
            self._active.pop(circuit_id, None)
        elif self._active.get(circuit_id) == version:
            self._active[circuit_id] = max(versions)
        logger.info("Removed verifying key for circuit %d version %d", circuit_id, version)

    def verify(
        self,
        circuit_id: int,
        proof_bytes: bytes,
        public_inputs: Sequence[bytes],
        version: Optional[int] = None,
    ) -> bool:
        """Verify against a registered key and record the outcome."""
        key = self.get(circuit_id, version)
        result = Groth16Verifier.verify(
            key.data,
            proof_bytes,
            public_inputs,
            expected_inputs=expected_public_inputs(circuit_id),
        )
        stats = self._stats.setdefault((circuit_id, key.version), VerificationStats())
        stats.verifications += 1
        if result:
            stats.successes += 1
        else:
            stats.failures += 1
            logger.warning(
                "Proof rejected for circuit %d version %d", circuit_id, key.version
            )
        return result

    def statistics(self, circuit_id: int, version: int) -> VerificationStats:
        stats = self._stats.get((circuit_id, version), VerificationStats())
        return VerificationStats(stats.verifications, stats.successes, stats.failures)
