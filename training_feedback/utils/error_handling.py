"""Standardized error handling utilities for batch jobs."""

from typing import Any


def create_item_error(
    error: Exception | str,
    item_id: str | None = None,
    stage: str = "processing",
) -> dict[str, Any]:
    """Create a standardized record of a per-item batch failure.

    Args:
        error: The error that occurred
        item_id: Identifier of the item that failed
        stage: Which step of the batch the item failed in

    Returns:
        Dictionary with error information for the batch report

    """
    error_message = str(error) if isinstance(error, Exception) else error

    return {
        "item_id": item_id,
        "stage": stage,
        "error_type": type(error).__name__ if isinstance(error, Exception) else "Error",
        "error": error_message,
    }


def has_errors(report: dict[str, Any]) -> bool:
    """Check if a batch report contains errors.

    Args:
        report: A batch report dictionary

    Returns:
        True if the report counts any errors, False otherwise

    """
    return bool(report.get("errors"))
