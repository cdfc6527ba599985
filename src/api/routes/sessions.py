"""
Swipe session routes.

All endpoints require JWT authentication; the caller id from the token is
the owner for create and the identity checked on every other call.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from config.constants import DEFAULT_SESSION_CONFIG
from core.auth import AuthenticatedUser, require_auth
from discovery.models import SwipeAction
from services.swipe_service import SwipeSessionService
from api.dependencies import get_session_service


router = APIRouter(prefix="/api/swipe", tags=["Swipe"])


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seed_track_ids: List[str] = Field(default_factory=list, alias="seedTrackIds")
    reuse_active: bool = Field(
        False,
        alias="reuseActive",
        description="Return the caller's latest session instead when it is still active",
    )


class RecordSwipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: SwipeAction = Field(..., description='"like" or "dislike"')
    track_id: str = Field(
        ...,
        min_length=1,
        alias="trackId",
        description="Normalized key of the candidate (artist:title) or its provider id",
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/session", status_code=status.HTTP_201_CREATED, summary="Create a swipe session")
def create_session(
    request: Optional[CreateSessionRequest] = None,
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    seed_ids = request.seed_track_ids if request else []
    if request and request.reuse_active:
        session = service.get_or_create_active(user.id, seed_ids)
    else:
        session = service.create(user.id, seed_ids)
    return {"success": True, "data": {"session": session.to_response()}}


@router.get("/session/{session_id}", summary="Get a swipe session")
def get_session(
    session_id: str,
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    session = service.get(session_id, user.id)
    return {"success": True, "data": {"session": session.to_response()}}


@router.patch("/session/{session_id}", summary="Record a swipe")
def record_swipe(
    session_id: str,
    request: RecordSwipeRequest,
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    session = service.record_swipe(session_id, user.id, request.action, request.track_id)
    return {"success": True, "data": {"session": session.to_response()}}


@router.post("/session/{session_id}/complete", summary="Complete a swipe session")
def complete_session(
    session_id: str,
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    session = service.complete(session_id, user.id)
    return {"success": True, "data": {"session": session.to_response()}}


@router.get("/session/{session_id}/stats", summary="Swipe counts for one session")
def get_session_stats(
    session_id: str,
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    stats = service.session_stats(session_id, user.id)
    return {"success": True, "data": {"stats": stats.model_dump(by_alias=True)}}


@router.get("/sessions", summary="List the caller's swipe sessions")
def list_sessions(
    limit: int = Query(DEFAULT_SESSION_CONFIG.DEFAULT_PAGE_SIZE, ge=1, le=DEFAULT_SESSION_CONFIG.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    sessions = service.list_sessions(user.id, limit=limit, offset=offset)
    return {
        "success": True,
        "data": {
            "sessions": [s.to_response() for s in sessions],
            "total": service.store.count_for_owner(user.id),
        },
    }


@router.get("/history", summary="Tracks the caller judged across all sessions")
def get_history(
    action: Optional[SwipeAction] = Query(None, description='Only "like" or only "dislike" entries'),
    limit: int = Query(DEFAULT_SESSION_CONFIG.DEFAULT_PAGE_SIZE, ge=1, le=DEFAULT_SESSION_CONFIG.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    entries, total = service.history(user.id, action=action, limit=limit, offset=offset)
    return {
        "success": True,
        "data": {
            "items": [e.to_response() for e in entries],
            "total": total,
            "hasMore": offset + len(entries) < total,
        },
    }


@router.get("/stats", summary="Swipe counts across all of the caller's sessions")
def get_user_stats(
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    stats = service.user_stats(user.id)
    return {"success": True, "data": {"stats": stats.model_dump(by_alias=True)}}
