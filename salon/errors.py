"""Error taxonomy shared by the components and the HTTP layer.

Every error carries the HTTP status and machine-readable code that the
application's error handler renders as
``{"error": code, "message": message, "errors": [...]}``.
"""
from __future__ import annotations


class SalonError(Exception):
    status_code = 500
    code = "server_error"

    def __init__(self, message: str | None = None, *, errors: list[dict[str, str]] | None = None,
                 details: dict[str, object] | None = None) -> None:
        self.message = message or self.default_message()
        self.errors = errors or []
        self.details = details or {}
        super().__init__(self.message)

    def default_message(self) -> str:
        return self.code.replace("_", " ")

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.code, "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        payload.update(self.details)
        return payload


class ValidationError(SalonError):
    status_code = 400
    code = "invalid_payload"

    @classmethod
    def for_fields(cls, errors: list[dict[str, str]]) -> "ValidationError":
        return cls("Validation failed", errors=errors)


class RangeTooLargeError(ValidationError):
    code = "range_too_large"


class InsufficientPointsError(ValidationError):
    code = "insufficient_points"


class AuthenticationError(SalonError):
    status_code = 401
    code = "unauthorized"


class InvalidTokenError(AuthenticationError):
    code = "invalid_token"


class ExpiredTokenError(AuthenticationError):
    code = "token_expired"


class AuthorizationError(SalonError):
    status_code = 403
    code = "forbidden"


class NotFoundError(SalonError):
    status_code = 404
    code = "not_found"


class NoActiveProgramError(NotFoundError):
    code = "no_active_program"

    def default_message(self) -> str:
        return "No active loyalty program found"


class ConflictError(SalonError):
    status_code = 409
    code = "conflict"


class DependencyError(SalonError):
    status_code = 500
    code = "dependency_error"
