"""Domain-level exceptions raised by the connection & visibility engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for engine errors; carries a machine-readable reason."""

    reason: str = "unknown"
    status_code: int = 500

    def __init__(self, reason: str | None = None, detail: str | None = None) -> None:
        super().__init__(detail or reason or self.reason)
        if reason:
            self.reason = reason
        self.detail = detail or self.reason


class NotFound(EngineError):
    reason = "not_found"
    status_code = 404


class Forbidden(EngineError):
    reason = "forbidden"
    status_code = 403


class Conflict(EngineError):
    reason = "conflict"
    status_code = 409


class InvalidTransition(EngineError):
    reason = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, action: str) -> None:
        super().__init__("invalid_transition", f"Cannot {action} a request that is {current}")
        self.current = current
        self.action = action


class ValidationError(EngineError):
    reason = "validation"
    status_code = 400
