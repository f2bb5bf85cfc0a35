"""
Unlock error taxonomy. Routes translate these to HTTP responses in lockflow.main.
"""


class UnlockError(Exception):
    """Base class for unlock flow errors."""


class UnlockValidationError(UnlockError):
    """Wrong code or an operation that does not apply to the resource's method. Visitor may retry."""


class DataIntegrityError(UnlockError):
    """Stored unlock requirement does not parse for its method. Fail closed."""


class ResourceNotFound(UnlockError):
    pass


class CreatorNotFound(ResourceNotFound):
    pass


class SessionNotFound(UnlockError):
    """Unknown, expired, closed or forged unlock session token."""


class CollaboratorUnavailable(UnlockError):
    """Storage, database or identity provider failed transiently."""
