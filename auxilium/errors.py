# =============================================================================
# ERRORS - Domain Exception Hierarchy
# =============================================================================
# Errors raised by the session store, the request scheduler and the engine
# adapters. The HTTP layer maps each class to a status code.
# =============================================================================

from __future__ import annotations
from typing import Optional, Dict, Any


class AuxiliumError(Exception):
    """
    Base exception for the chat core.

    Attributes:
        message: Error message
        code: Error code
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code or "AUXILIUM_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFound(AuxiliumError):
    """Unknown or already deleted session id."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} not found",
            "SESSION_NOT_FOUND",
            {"session_id": session_id}
        )


class DuplicateId(AuxiliumError):
    """Caller-supplied session id is already live."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} already exists",
            "DUPLICATE_SESSION_ID",
            {"session_id": session_id}
        )


class CapacityExceeded(AuxiliumError):
    """Live-session ceiling reached."""

    def __init__(self, max_sessions: int):
        super().__init__(
            f"Maximum concurrent sessions ({max_sessions}) reached",
            "CAPACITY_EXCEEDED",
            {"max_sessions": max_sessions}
        )


class InvalidInput(AuxiliumError):
    """Empty message or empty system role."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, "INVALID_INPUT", {"field": field})


class EngineFailure(AuxiliumError):
    """The inference call itself failed."""

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(
            message,
            "ENGINE_FAILURE",
            {"session_id": session_id}
        )


class EngineInitializationError(AuxiliumError):
    """Model could not be loaded. Fatal at startup."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message, "ENGINE_INITIALIZATION_ERROR", {"model": model})


class QueueFull(AuxiliumError):
    """Bounded request queue is at capacity."""

    def __init__(self, max_queue_size: int):
        super().__init__(
            f"Request queue is full ({max_queue_size} pending)",
            "QUEUE_FULL",
            {"max_queue_size": max_queue_size}
        )


class SchedulerStopped(AuxiliumError):
    """Scheduler is not running or was stopped before the request drained."""

    def __init__(self, message: str = "Request scheduler is not running"):
        super().__init__(message, "SCHEDULER_STOPPED")
