"""Training feedback loop - learning from human corrections of AI bid extractions."""

from .config import CALIBRATION_CONFIG, MODEL_CONFIG, PATTERN_CONFIG
from .exceptions import (
    ExternalServiceError,
    NotFoundError,
    SearchUnavailableError,
    StorageError,
    TrainingFeedbackError,
    ValidationError,
)

__version__ = "0.1.0"
__all__ = [
    "CALIBRATION_CONFIG",
    "MODEL_CONFIG",
    "PATTERN_CONFIG",
    "ExternalServiceError",
    "NotFoundError",
    "SearchUnavailableError",
    "StorageError",
    "TrainingFeedbackError",
    "ValidationError",
]
