"""
Audit policies: who may request a disclosure, and when approval is allowed.

Auditors narrow WHO may request. Conditions widen WHEN an approval is
permitted and are OR-combined: a disclosure is allowed if any condition
holds. Each condition variant carries its own pure predicate, so every call
site evaluates a policy the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence, Tuple

from ..config import FIELD_ELEMENT_BYTES, MAX_AUDITORS, MAX_CONDITIONS
from ..exceptions import StructuralError, TooManyAuditors, TooManyConditions

MAX_CUSTOM_PARAMS_BYTES = 1024

AccountId = str


def _check_id(value: bytes, name: str) -> None:
    if not isinstance(value, bytes) or len(value) != FIELD_ELEMENT_BYTES:
        raise StructuralError(f"{name} must be {FIELD_ELEMENT_BYTES} bytes")


# ============================================================================
# AUDITORS
# ============================================================================


class Auditor(ABC):
    """A principal allowed to request disclosures from a policy's owner."""

    @abstractmethod
    def authorizes(self, account: AccountId, resolver: Optional["AuditorResolver"]) -> bool:
        """Whether `account` is covered by this entry."""


AuditorResolver = Callable[[Auditor, AccountId], bool]


@dataclass(frozen=True)
class AccountAuditor(Auditor):
    account: AccountId

    def authorizes(self, account: AccountId, resolver: Optional[AuditorResolver]) -> bool:
        return account == self.account


@dataclass(frozen=True)
class RoleAuditor(Auditor):
    """Any account holding `role`, as decided by the resolver."""

    role: bytes

    def __post_init__(self) -> None:
        _check_id(self.role, "role")

    def authorizes(self, account: AccountId, resolver: Optional[AuditorResolver]) -> bool:
        return resolver is not None and resolver(self, account)


@dataclass(frozen=True)
class CredentialAuditor(Auditor):
    """Any account holding `credential`, as decided by the resolver."""

    credential: bytes

    def __post_init__(self) -> None:
        _check_id(self.credential, "credential")

    def authorizes(self, account: AccountId, resolver: Optional[AuditorResolver]) -> bool:
        return resolver is not None and resolver(self, account)


# ============================================================================
# CONDITIONS
# ============================================================================


@dataclass(frozen=True)
class ConditionContext:
    """
    State a condition is evaluated against.

    Attributes:
        current_block: Height at evaluation time
        commitment_known: Whether the target commitment is in the tree
        amount: Value revealed by the disclosure, when it reveals one
    """

    current_block: int
    commitment_known: bool
    amount: Optional[int] = None


class DisclosureCondition(ABC):
    @abstractmethod
    def is_satisfied(self, context: ConditionContext) -> bool:
        """Pure predicate over the evaluation context."""


@dataclass(frozen=True)
class Always(DisclosureCondition):
    def is_satisfied(self, context: ConditionContext) -> bool:
        return True


@dataclass(frozen=True)
class TimeDelay(DisclosureCondition):
    after_block: int

    def is_satisfied(self, context: ConditionContext) -> bool:
        return context.current_block >= self.after_block


@dataclass(frozen=True)
class AmountThreshold(DisclosureCondition):
    """Holds for a known commitment; a revealed amount must reach the minimum."""

    min_amount: int

    def is_satisfied(self, context: ConditionContext) -> bool:
        if not context.commitment_known:
            return False
        return context.amount is None or context.amount >= self.min_amount


@dataclass(frozen=True)
class JudicialOrder(DisclosureCondition):
    court_id: bytes
    case_id: bytes

    def __post_init__(self) -> None:
        _check_id(self.court_id, "court_id")
        _check_id(self.case_id, "case_id")

    def is_satisfied(self, context: ConditionContext) -> bool:
        return context.commitment_known


@dataclass(frozen=True)
class Custom(DisclosureCondition):
    condition_id: bytes
    params: bytes = b""

    def __post_init__(self) -> None:
        _check_id(self.condition_id, "condition_id")
        if len(self.params) > MAX_CUSTOM_PARAMS_BYTES:
            raise StructuralError(
                f"custom condition params exceed {MAX_CUSTOM_PARAMS_BYTES} bytes"
            )

    def is_satisfied(self, context: ConditionContext) -> bool:
        return context.commitment_known


def conditions_met(
    conditions: Sequence[DisclosureCondition], context: ConditionContext
) -> bool:
    """OR over all conditions. An empty set never holds."""
    return any(condition.is_satisfied(context) for condition in conditions)


# ============================================================================
# POLICY
# ============================================================================


@dataclass(frozen=True)
class AuditPolicy:
    """
    Per-account disclosure policy.

    Attributes:
        auditors: 1 to MAX_AUDITORS entries
        conditions: Up to MAX_CONDITIONS entries, OR-combined
        max_frequency: Minimum block spacing between disclosures, or None
        version: Starts at 1, incremented on every update
    """

    auditors: Tuple[Auditor, ...]
    conditions: Tuple[DisclosureCondition, ...] = ()
    max_frequency: Optional[int] = None
    version: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "auditors", tuple(self.auditors))
        object.__setattr__(self, "conditions", tuple(self.conditions))
        if not self.auditors:
            raise TooManyAuditors("audit policy needs at least one auditor")
        if len(self.auditors) > MAX_AUDITORS:
            raise TooManyAuditors(
                f"{len(self.auditors)} auditors, maximum is {MAX_AUDITORS}"
            )
        if len(self.conditions) > MAX_CONDITIONS:
            raise TooManyConditions(
                f"{len(self.conditions)} conditions, maximum is {MAX_CONDITIONS}"
            )
        if self.max_frequency is not None and self.max_frequency < 0:
            raise ValueError("max_frequency must be non-negative")

    def authorizes(
        self, account: AccountId, resolver: Optional[AuditorResolver] = None
    ) -> bool:
        return any(auditor.authorizes(account, resolver) for auditor in self.auditors)

    def conditions_met(self, context: ConditionContext) -> bool:
        return conditions_met(self.conditions, context)

    def next_version(self, replacement: "AuditPolicy") -> "AuditPolicy":
        """`replacement` stamped with the version following this one."""
        return replace(replacement, version=self.version + 1)
