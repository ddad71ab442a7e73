"""
API error types.

Each error carries the HTTP status it maps to; main.py renders all of
them as ``{"message": ...}``.
"""


class APIError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(APIError):
    """A required field is missing or empty."""
    status_code = 400

    def __init__(self, message: str = "Missing required fields"):
        super().__init__(message)


class ConflictError(APIError):
    """Business key already taken."""
    status_code = 400


class NotFoundError(APIError):
    status_code = 404


class InternalError(APIError):
    """Store or other unexpected failure; message is passed through."""
    status_code = 500
