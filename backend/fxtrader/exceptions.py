"""
Domain exceptions for the application.

Services raise these instead of fastapi.HTTPException to avoid coupling
the service layer to the web framework. A global exception handler in
main.py translates them into HTTP responses.
"""

from typing import Optional


class AppError(Exception):
    """Base application error with an HTTP-equivalent status code."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Input validation failure (400)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class BrokerError(AppError):
    """Base class for failures talking to the broker (502)."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code=status_code)


class BrokerConfigurationError(BrokerError):
    """Broker credentials required for the requested call are missing."""

    def __init__(self, message: str):
        super().__init__(message, status_code=503)


class BrokerRequestError(BrokerError):
    """Broker answered with a non-2xx response."""

    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(message, status_code=502)


class BrokerUnavailableError(BrokerError):
    """Broker unreachable or timed out (503)."""

    def __init__(self, message: str = "Broker service unavailable"):
        super().__init__(message, status_code=503)


def format_error(error: BaseException) -> str:
    """Human readable message for an exception, used in session logs"""
    message = str(error)
    if message:
        return message
    return error.__class__.__name__
