# cepetdeal/errors.py
"""Domain error taxonomy.

Services raise these; `main.py` turns them into `{"error": ...}` JSON
responses carrying `status_code`.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, field: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.field = field
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.code:
            body["code"] = self.code
        if self.field:
            body["field"] = self.field
        body.update(self.extra)
        return body


class Unauthorized(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class Forbidden(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden", **kwargs):
        super().__init__(message, **kwargs)


class NotFound(AppError):
    status_code = 404


class ValidationError(AppError):
    status_code = 400


class DomainError(AppError):
    """A legal request asking for a disallowed state transition."""
    status_code = 400


class Conflict(AppError):
    status_code = 409


class RateLimited(AppError):
    status_code = 429
