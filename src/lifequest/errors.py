from __future__ import annotations

from typing import Any


class LifeQuestError(Exception):
    """Base error surfaced to the caller unmodified.

    ``code`` is the stable identifier the API layer puts in its error body and
    ``http_status`` is the status it is expected to answer with.
    """

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LifeQuestError, ValueError):
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(LifeQuestError):
    code = "NOT_FOUND"
    http_status = 404


class ForbiddenError(LifeQuestError):
    code = "FORBIDDEN"
    http_status = 403


class ConflictError(LifeQuestError):
    code = "CONFLICT"
    http_status = 409


class AlreadyCompletedError(ConflictError):
    code = "ALREADY_COMPLETED"


class CannotDeleteCompletedError(LifeQuestError):
    code = "CANNOT_DELETE_COMPLETED"
    http_status = 400


class CannotSkipCompletedError(LifeQuestError):
    code = "CANNOT_SKIP_COMPLETED"
    http_status = 400


class InsufficientFundsError(LifeQuestError):
    code = "INSUFFICIENT_FUNDS"
    http_status = 400


class AlreadyOwnedError(LifeQuestError):
    code = "ALREADY_OWNED"
    http_status = 409


class NotOwnedError(LifeQuestError):
    code = "NOT_OWNED"
    http_status = 400


class SlotMismatchError(LifeQuestError):
    code = "SLOT_MISMATCH"
    http_status = 400


class IdempotencyConflictError(ConflictError):
    code = "IDEMPOTENCY_CONFLICT"
