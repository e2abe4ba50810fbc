from __future__ import annotations


class AppError(Exception):
    """Base application error.

    ``code`` is what a WebSocket client sees in an ``error`` event; HTTP
    handlers map the class to a status instead.
    """

    code = "invalid_data"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class ConflictError(AppError):
    code = "conflict"


class ValidationError(AppError):
    pass


class InvalidUsernameError(ValidationError):
    code = "invalid_username"


class EmptyMessageError(ValidationError):
    code = "empty_message"
