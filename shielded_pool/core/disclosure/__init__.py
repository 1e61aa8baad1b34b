"""Selective disclosure: masks, signals, policies and the request workflow."""

from .entities import AuditTrail, DisclosureRecord, DisclosureRequest
from .mask import DisclosureMask, validate_mask
from .partial import PartialMemoData
from .policy import (
    AccountAuditor,
    Always,
    AmountThreshold,
    AuditPolicy,
    Auditor,
    ConditionContext,
    CredentialAuditor,
    Custom,
    DisclosureCondition,
    JudicialOrder,
    RoleAuditor,
    TimeDelay,
    conditions_met,
)
from .proof import DisclosureProof
from .service import BlockClock, DisclosureService, DisclosureSubmission, check_spacing
from .signals import DisclosurePublicSignals
from .validator import DisclosureValidator

__all__ = [
    "AuditTrail",
    "DisclosureRecord",
    "DisclosureRequest",
    "DisclosureMask",
    "validate_mask",
    "PartialMemoData",
    "AccountAuditor",
    "Always",
    "AmountThreshold",
    "AuditPolicy",
    "Auditor",
    "ConditionContext",
    "CredentialAuditor",
    "Custom",
    "DisclosureCondition",
    "JudicialOrder",
    "RoleAuditor",
    "TimeDelay",
    "conditions_met",
    "DisclosureProof",
    "BlockClock",
    "DisclosureService",
    "DisclosureSubmission",
    "check_spacing",
    "DisclosurePublicSignals",
    "DisclosureValidator",
]
