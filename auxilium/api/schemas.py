# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/schemas.py — Pydantic Request/Response Models
# =================================================================================================
#   1. INPUT VALIDATION: Type checking and size limits on request bodies.
#   2. DOCUMENTATION: Field descriptions for OpenAPI/Swagger generation.
#   3. ENVELOPE: Every success response carries "success": true.
#
# Naming Conventions:
# -------------------
#   - *Request: Input models for POST/PUT endpoints.
#   - *Response: Output models for API responses.
#
# Empty message / role strings are accepted here and rejected by the chat
# manager, so they surface as 400 INVALID_INPUT rather than 422.
#
# =================================================================================================

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """
    Base schema with shared configuration.

    Model Config:
    -------------
    - from_attributes: Build responses straight from dataclasses.
    - populate_by_name: Request bodies accept snake_case field names as well as
      their camelCase aliases (sessionId, maxAgeMinutes, systemRole).
    - validate_default: Validate default values.
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        validate_default=True,
    )


# =============================================================================
# Session Schemas
# =============================================================================

class CreateSessionRequest(BaseSchema):
    """
    POST /sessions

    Example:
    --------
    {"session_id": "support-42"}  or  {"sessionId": "support-42"}
    """
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        max_length=256,
        description="Custom session ID (UUID4 generated if omitted). "
                    "Caller-supplied IDs share one namespace with generated ones.",
    )


class CreateSessionResponse(BaseSchema):
    success: bool = True
    session_id: str
    message: str = "Session created successfully"


class SendMessageRequest(BaseSchema):
    """
    POST /sessions/{session_id}/messages

    Example:
    --------
    {"message": "Hello!"}
    """
    message: str = Field(
        ...,
        max_length=100_000,
        description="User message text. Must not be empty.",
    )


class SendMessageResponse(BaseSchema):
    success: bool = True
    response: str
    session_id: str
    timestamp: float = Field(..., description="Unix epoch seconds")


class HistoryEntrySchema(BaseSchema):
    role: Literal["user", "assistant"]
    content: str
    timestamp: float


class HistoryResponse(BaseSchema):
    success: bool = True
    session_id: str
    history: List[HistoryEntrySchema]
    message_count: int


class SuccessResponse(BaseSchema):
    success: bool = True
    message: str


# =============================================================================
# Status & Maintenance Schemas
# =============================================================================

class SessionSummary(BaseSchema):
    id: str
    created_at: float
    last_activity: float
    message_count: int


class QueueStatus(BaseSchema):
    queue_length: int
    is_processing: bool
    active_sessions: int
    max_sessions: int
    sessions: List[SessionSummary] = Field(default_factory=list)


class StatusResponse(BaseSchema):
    success: bool = True
    status: QueueStatus


class CleanupRequest(BaseSchema):
    max_age_minutes: float = Field(
        default=60.0,
        alias="maxAgeMinutes",
        ge=0,
        description="Sessions idle longer than this are deleted.",
    )


class CleanupResponse(BaseSchema):
    success: bool = True
    message: str
    cleaned_sessions: int


class SystemRoleRequest(BaseSchema):
    system_role: str = Field(..., alias="systemRole", max_length=20_000)


class SystemRoleResponse(BaseSchema):
    success: bool = True
    system_role: str
    message: Optional[str] = None


# =============================================================================
# Health Schemas
# =============================================================================

class HealthResponse(BaseSchema):
    status: Literal["healthy", "unhealthy"]
    timestamp: float
    uptime: float = Field(..., description="Seconds since the app started")
    engine_ready: bool = False


class ErrorResponse(BaseSchema):
    success: bool = False
    error: str
    message: str
    details: Optional[object] = None
    request_id: Optional[str] = None
    timestamp: float
