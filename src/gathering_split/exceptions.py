"""Custom exceptions for GatheringSplit."""


class GatheringSplitError(Exception):
    """Base exception for all GatheringSplit errors."""

    pass


class ConfigurationError(GatheringSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(GatheringSplitError):
    """Base class for invalid gathering or expense input."""

    pass


class EmptyGatheringError(ValidationError):
    """Raised when a balance computation has no participants."""

    pass


class UnknownParticipantError(ValidationError):
    """Raised when an expense references a participant outside the gathering."""

    def __init__(self, participant_id: str, message: str | None = None):
        self.participant_id = participant_id
        super().__init__(message or f"Unknown participant: {participant_id}")


class GatheringMismatchError(ValidationError):
    """Raised when an expense belongs to a different gathering."""

    pass


class NoEligibleParticipantsError(ValidationError):
    """Raised when nobody declared on an expense is eligible to share it."""

    def __init__(self, expense_id: str, message: str | None = None):
        self.expense_id = expense_id
        super().__init__(
            message
            or f"Expense {expense_id} has no eligible participants to share its cost"
        )


class NotFoundError(GatheringSplitError):
    """Base class for missing store records."""

    pass


class GatheringNotFoundError(NotFoundError):
    """Raised when a gathering does not exist."""

    pass


class ParticipantNotFoundError(NotFoundError):
    """Raised when a participant does not exist."""

    pass


class ExpenseNotFoundError(NotFoundError):
    """Raised when an expense does not exist."""

    pass


class ParticipantInUseError(GatheringSplitError):
    """Raised when removing a participant still referenced by a gathering."""

    pass


class DuplicateParticipantError(ValidationError):
    """Raised when adding a participant who is already part of a gathering."""

    pass


class ImmutableFieldError(ValidationError):
    """Raised when an update tries to change a record's ID."""

    pass
