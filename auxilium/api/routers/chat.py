# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/routers/chat.py — Chat Session Endpoints
# =================================================================================================
# Endpoints:
# ----------
#   POST   /sessions                        Create a session
#   POST   /sessions/{session_id}/messages  Send a message (queued behind every earlier request)
#   GET    /sessions/{session_id}/history   Conversation history
#   DELETE /sessions/{session_id}           Delete a session
#   GET    /status                          Queue and session status
#   POST   /cleanup                         Delete inactive sessions
#   GET    /system-role                     Current system role
#   PUT    /system-role                     Replace the system role
#
# All paths are mounted under settings.api_prefix (default /api/chat).
# =================================================================================================

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from auxilium.api.dependencies import get_manager
from auxilium.api.schemas import (
    CleanupRequest,
    CleanupResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    ErrorResponse,
    HistoryResponse,
    QueueStatus,
    SendMessageRequest,
    SendMessageResponse,
    StatusResponse,
    SuccessResponse,
    SystemRoleRequest,
    SystemRoleResponse,
)
from auxilium.manager import ChatManager

_LOG = logging.getLogger("auxilium.api.routers.chat")

router = APIRouter(
    tags=["Chat"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        503: {"model": ErrorResponse, "description": "At capacity or not running"},
    },
)


# =============================================================================
# Sessions
# =============================================================================

@router.post(
    "/sessions",
    response_model=CreateSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Session",
    responses={409: {"model": ErrorResponse, "description": "Session ID already exists"}},
)
async def create_session(
    body: Optional[CreateSessionRequest] = None,
    manager: ChatManager = Depends(get_manager),
) -> CreateSessionResponse:
    session_id = await manager.create_session(body.session_id if body else None)
    return CreateSessionResponse(session_id=session_id)


@router.post(
    "/sessions/{session_id}/messages",
    response_model=SendMessageResponse,
    summary="Send Message",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        500: {"model": ErrorResponse, "description": "Inference failed"},
    },
)
async def send_message(
    session_id: str,
    body: SendMessageRequest,
    manager: ChatManager = Depends(get_manager),
) -> SendMessageResponse:
    """
    Send a message to a session.

    The request waits in the global FIFO behind every earlier request from
    any session, then runs as one engine turn.
    """
    result = await manager.send_message(session_id, body.message)
    return SendMessageResponse(
        response=result["response"],
        session_id=session_id,
        timestamp=result["timestamp"],
    )


@router.get(
    "/sessions/{session_id}/history",
    response_model=HistoryResponse,
    summary="Get History",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_history(
    session_id: str,
    manager: ChatManager = Depends(get_manager),
) -> HistoryResponse:
    history = manager.get_history(session_id)
    return HistoryResponse(
        session_id=session_id,
        history=history,
        message_count=len(history),
    )


@router.delete(
    "/sessions/{session_id}",
    response_model=SuccessResponse,
    summary="Delete Session",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def delete_session(
    session_id: str,
    manager: ChatManager = Depends(get_manager),
) -> SuccessResponse:
    await manager.delete_session(session_id)
    return SuccessResponse(message=f"Session {session_id} deleted successfully")


# =============================================================================
# Status & Maintenance
# =============================================================================

@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Queue Status",
)
async def get_status(manager: ChatManager = Depends(get_manager)) -> StatusResponse:
    return StatusResponse(
        status=QueueStatus(
            **manager.get_status(),
            sessions=manager.get_active_sessions(),
        )
    )


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Clean Up Inactive Sessions",
)
async def cleanup(
    body: Optional[CleanupRequest] = None,
    manager: ChatManager = Depends(get_manager),
) -> CleanupResponse:
    max_age = body.max_age_minutes if body else 60.0
    cleaned = await manager.cleanup_inactive_sessions(max_age)
    return CleanupResponse(
        message=f"Cleaned up {cleaned} inactive sessions",
        cleaned_sessions=cleaned,
    )


# =============================================================================
# System Role
# =============================================================================

@router.get(
    "/system-role",
    response_model=SystemRoleResponse,
    summary="Get System Role",
)
async def get_system_role(manager: ChatManager = Depends(get_manager)) -> SystemRoleResponse:
    return SystemRoleResponse(system_role=manager.get_system_role())


@router.put(
    "/system-role",
    response_model=SystemRoleResponse,
    summary="Update System Role",
)
async def update_system_role(
    body: SystemRoleRequest,
    manager: ChatManager = Depends(get_manager),
) -> SystemRoleResponse:
    """Takes effect for every subsequent turn in every session."""
    manager.update_system_role(body.system_role)
    return SystemRoleResponse(
        system_role=manager.get_system_role(),
        message="System role updated successfully",
    )
