"""Custom exceptions for the training feedback loop."""


class TrainingFeedbackError(Exception):
    """Base exception for the training feedback loop."""

    pass


class ValidationError(TrainingFeedbackError):
    """Raised when a correction is malformed for its declared kind."""

    pass


class ExternalServiceError(TrainingFeedbackError):
    """Raised when the embedding provider call fails."""

    pass


class StorageError(TrainingFeedbackError):
    """Raised when reading from or writing to the database fails."""

    pass


class SearchUnavailableError(StorageError):
    """Raised when ranked similarity search cannot be performed."""

    pass


class NotFoundError(TrainingFeedbackError):
    """Raised when a referenced row does not exist."""

    pass
