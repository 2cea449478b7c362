"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidArgumentError(DomainException):
    """Malformed input: bad date, non-positive amount, parts < 1"""

    pass


class AmountMismatchError(DomainException):
    """Custom schedule amounts do not add up to the declared total"""

    pass


class NotFoundError(DomainException):
    """Referenced entity, instance or movement does not exist"""

    pass


class InvalidStateTransitionError(DomainException):
    """Transition attempted out of a terminal state"""

    pass


class CrossEntityViolationError(DomainException):
    """Settling account belongs to a different entity than the schedule"""

    pass


class GovernanceViolationError(DomainException):
    """Disallowed mutation, e.g. hard-delete of a parent with realized history"""

    pass


class ConflictError(DomainException):
    """
    Uniqueness invariant already satisfied by an earlier write.

    Expected under concurrent retries; callers may treat it as an
    idempotent no-op rather than a failure.
    """

    pass


class AlreadySettledError(ConflictError):
    """A ledger movement already settles this schedule instance"""

    pass


class AlreadyReconciledError(ConflictError):
    """The external transaction already has a reconciliation link"""

    pass
