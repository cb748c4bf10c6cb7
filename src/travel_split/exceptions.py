"""Custom exceptions for TravelSplit."""


class TravelSplitError(Exception):
    """Base exception for all TravelSplit errors."""

    pass


class ConfigurationError(TravelSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(TravelSplitError):
    """Raised when a participant or expense fails input validation."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class DuplicateParticipantError(TravelSplitError):
    """Raised when a participant name is already taken (case-insensitive)."""

    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"A participant named '{name}' already exists")


class ParticipantNotFoundError(TravelSplitError):
    """Raised when a participant id does not exist."""

    pass


class ParticipantInUseError(TravelSplitError):
    """Raised when removing a participant still referenced by an expense."""

    def __init__(self, participant_id: str, role: str, message: str | None = None):
        self.participant_id = participant_id
        self.role = role
        super().__init__(
            message
            or f"Participant {participant_id} is the {role} of at least one expense"
        )


class ExpenseNotFoundError(TravelSplitError):
    """Raised when an expense id does not exist."""

    pass


class APIError(TravelSplitError):
    """Base class for API-related errors."""

    pass


class ExchangeRateAPIError(APIError):
    """Raised when the exchange rate API request fails."""

    pass
