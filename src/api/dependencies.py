"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, HTTPException, Request, status

from src.api.sessions import SessionNotFound, WorkflowSessions
from src.domain.profile import ProfileService
from src.domain.registration import RegistrationWorkflow


def get_sessions(request: Request) -> WorkflowSessions:
    """
    Get the workflow session registry from app state.

    The registry is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.sessions


def get_workflow(
    session_id: str,
    sessions: WorkflowSessions = Depends(get_sessions),
) -> RegistrationWorkflow:
    """Resolve the workflow for a path session id, 404 if unknown."""
    try:
        return sessions.get(session_id)
    except SessionNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registration session not found",
        ) from None


def get_profile_service(request: Request) -> ProfileService:
    """
    Get the shared profile service (singleton per app).

    One instance per app so its update lock serializes all profile patches.
    """
    return request.app.state.profile_service
