"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    kind = "AppError"

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_dict(self):
        """Serialize the error for an API response."""
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(AppError):
    """Raised when caller input is malformed or insufficient."""

    kind = "ValidationError"

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class InsufficientParticipants(ValidationError):
    """A pool or bracket has fewer than two active participants."""

    kind = "InsufficientParticipants"


class EmptySeedList(ValidationError):
    """The bracket seeder was given no participants."""

    kind = "EmptySeedList"

    def __init__(self, message="Cannot seed a bracket without participants."):
        """Initialize the error."""
        super().__init__(message)


class DuplicateParticipant(ValidationError):
    """The same participant identifier was supplied twice."""

    kind = "DuplicateParticipant"


class InvalidScore(ValidationError):
    """A submitted score cannot decide a winner."""

    kind = "InvalidScore"


class StateConflictError(AppError):
    """Raised when an operation is illegal in the current state."""

    kind = "StateConflictError"

    def __init__(self, message="The competition is not in a valid state."):
        """Initialize the error."""
        super().__init__(message, 409)


class InvalidTransition(StateConflictError):
    """The requested lifecycle transition is not allowed."""

    kind = "InvalidTransition"


class RoundIncomplete(StateConflictError):
    """The current round still has scheduled or in-progress matches."""

    kind = "RoundIncomplete"


class RoundAlreadyExists(StateConflictError):
    """A round with the requested sequence number was already generated."""

    kind = "RoundAlreadyExists"


class CompetitionClosed(StateConflictError):
    """The competition is completed or cancelled."""

    kind = "CompetitionClosed"


class MatchAlreadyResolved(StateConflictError):
    """A result was submitted for a match that is no longer open."""

    kind = "MatchAlreadyResolved"


class CompetitionFull(StateConflictError):
    """The competition has reached its participant limit."""

    kind = "CompetitionFull"


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    kind = "NotFoundError"

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class InternalError(AppError):
    """Raised when persistence fails or times out.

    The transaction that raised it has been discarded, so the operation can be
    retried safely.
    """

    kind = "InternalError"

    def __init__(self, message="A storage error occurred. Please try again."):
        """Initialize the error."""
        super().__init__(message, 500)
