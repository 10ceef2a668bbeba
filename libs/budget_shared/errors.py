"""
Domain exceptions and standardized HTTP error helpers.

The exception classes describe the failure taxonomy of the budget assistant;
the helper functions build FastAPI exceptions with a consistent body.
"""

from typing import Any, Optional

from fastapi import HTTPException, status

from .models import ErrorResponse

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class BudgetAssistantError(Exception):
    """Base class for every error raised by the budget assistant."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(BudgetAssistantError):
    """Required settings (credentials, URLs) are missing or invalid."""


class GatewayError(BudgetAssistantError):
    """
    The financial data service rejected a call or could not be reached.

    Recovered at the tool boundary: the message is handed back to the model
    as an ``{"error": ...}`` payload.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ToolArgumentError(BudgetAssistantError):
    """A tool call named an unknown tool or carried malformed arguments."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(message)

    def __str__(self):
        return f"Invalid call to '{self.tool}': {self.message}"


class ModelInvocationError(BudgetAssistantError):
    """The language model provider failed; fatal for the current turn."""


def validation_error(
    detail: str = "Invalid input parameters",
    field: Optional[str] = None,
    value: Optional[Any] = None,
) -> HTTPException:
    """
    Create a 422 Unprocessable Entity exception with consistent error structure.

    Args:
        detail: Error message explaining the validation error
        field: Optional field name that failed validation
        value: Optional invalid value provided

    Returns:
        HTTPException with 422 status code and structured error content
    """
    error_msg = detail
    if field:
        error_msg = f"{detail} for field '{field}'"
        if value is not None:
            error_msg += f" with value '{value}'"

    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=ErrorResponse(error="Validation Error", detail=error_msg).model_dump(),
    )


def service_error(
    message: str = GENERIC_FAILURE_MESSAGE,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> HTTPException:
    """
    Create a service error exception with consistent structure.

    Args:
        message: Error message shown to the end user
        status_code: HTTP status code to use

    Returns:
        HTTPException with provided status code and structured error content
    """
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error="Service Error", detail=message).model_dump(),
    )
