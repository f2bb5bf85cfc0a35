"""
Unlock-gating engine (internal library).
Decision (evaluator) and execution (grant) are separated; UnlockSession drives both per visit.
"""
from lockflow.unlock.audit import record_unlock
from lockflow.unlock.errors import (
    CollaboratorUnavailable,
    CreatorNotFound,
    DataIntegrityError,
    ResourceNotFound,
    SessionNotFound,
    UnlockError,
    UnlockValidationError,
)
from lockflow.unlock.evaluator import evaluate, normalize_code, validate_requirement
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.references import is_external_url
from lockflow.unlock.models import (
    AccessGrantResult,
    Evaluation,
    LockedResource,
    Outcome,
    SessionSnapshot,
    SessionState,
    UnlockMethod,
)
from lockflow.unlock.registry import UnlockSessionRegistry
from lockflow.unlock.session import UnlockSession

__all__ = [
    "AccessGrantResult",
    "CollaboratorUnavailable",
    "CreatorNotFound",
    "DataIntegrityError",
    "Evaluation",
    "LockedResource",
    "Outcome",
    "ResourceAccessGrant",
    "ResourceNotFound",
    "SessionNotFound",
    "SessionSnapshot",
    "SessionState",
    "UnlockError",
    "UnlockMethod",
    "UnlockSession",
    "UnlockSessionRegistry",
    "UnlockValidationError",
    "evaluate",
    "is_external_url",
    "normalize_code",
    "record_unlock",
    "validate_requirement",
]
