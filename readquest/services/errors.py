# readquest/services/errors.py
"""
Typed failures raised by the reward engine.

Eligibility failures (NotFound, AlreadyClaimed, Forbidden, InsufficientResource)
are decisions, not transient errors: callers must not retry them.
Handlers show `user_message`; everything else gets a generic retry-later text.
"""
from __future__ import annotations

from typing import Any


class EngineError(Exception):
    error_code: str = "ENGINE_ERROR"
    user_message: str = "⚠️ Something went wrong. Please try again later."

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}
        if user_message is not None:
            self.user_message = user_message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        details = f" | {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details}"


class NotFoundError(EngineError):
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None) -> None:
        msg = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(
            msg,
            {"resource": resource, "identifier": identifier},
            user_message=f"🔎 {resource} not found.",
        )
        self.resource = resource
        self.identifier = identifier


class AlreadyClaimedError(EngineError):
    error_code = "ALREADY_CLAIMED"
    user_message = "⏳ Already claimed for this period."


class ForbiddenError(EngineError):
    error_code = "FORBIDDEN"
    user_message = "👑 This requires an active premium subscription."


class InsufficientResourceError(EngineError):
    error_code = "INSUFFICIENT_RESOURCE"

    def __init__(self, resource: str, required: int, current: int) -> None:
        super().__init__(
            f"Insufficient {resource}: need {required}, have {current}",
            {"resource": resource, "required": required, "current": current},
            user_message=f"💸 Not enough {resource}: you need {required}, you have {current}.",
        )
        self.resource = resource
        self.required = required
        self.current = current


class ValidationError(EngineError):
    """Admin-authored configuration is invalid (raised at save time only)."""
    error_code = "VALIDATION"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            f"Validation error for {field}: {message}",
            {"field": field},
            user_message=f"❌ Invalid {field}: {message}",
        )
        self.field = field


class InternalError(EngineError):
    error_code = "INTERNAL"
