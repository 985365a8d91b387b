"""
Error taxonomy for the school API.

Every handler raises one of these; the handlers registered in main.py render
them as ``{"message": ...}`` with the matching HTTP status.
"""
from typing import Any, Dict


class SchoolError(Exception):
    """Base exception for all API errors"""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class Unauthenticated(SchoolError):
    """No bearer credential was supplied"""

    status_code = 401

    def __init__(self, message: str = "Access token required"):
        super().__init__(message)


class InvalidCredential(SchoolError):
    """Bearer credential is malformed, expired or badly signed"""

    status_code = 403

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class Forbidden(SchoolError):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ValidationFailure(SchoolError):
    status_code = 400

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class NotFound(SchoolError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class DependencyFailure(SchoolError):
    """Store or external collaborator unreachable"""

    status_code = 500

    def __init__(self, message: str = "Service dependency unavailable"):
        super().__init__(message)
