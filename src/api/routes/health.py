"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from config.settings import get_settings
from config.database import get_supabase_client_optional, ping_swipe_sessions
from api.dependencies import get_session_store
from services.session_store import SwipeSessionStore


router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> Dict[str, Any]:
    """Process is up; no dependencies are checked."""
    return {
        "status": "healthy",
        "service": "swipe-discovery-api",
    }


@router.get("/health/detailed")
def detailed_health_check(
    store: SwipeSessionStore = Depends(get_session_store),
) -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Configuration loaded
    - Session store reachable
    - Supabase connection (when that backend is configured)
    """
    settings = get_settings()

    store_status: Dict[str, Any] = {"backend": settings.session_store_backend}
    try:
        store_status.update(store.get_stats())
        store_status["status"] = "ok"
    except Exception as e:
        store_status["status"] = "error"
        store_status["error"] = str(e)

    supabase_status = "not_configured"
    supabase_error = None
    if settings.session_store_backend == "supabase":
        try:
            client = get_supabase_client_optional()
            if client:
                ping_swipe_sessions(client, settings.swipe_sessions_table)
                supabase_status = "connected"
        except Exception as e:
            supabase_status = "error"
            supabase_error = str(e)

    healthy = store_status["status"] == "ok" and supabase_status != "error"
    return {
        "status": "healthy" if healthy else "degraded",
        "service": "swipe-discovery-api",
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "catalog_provider": settings.catalog_provider,
            "session_store": store_status,
            "supabase": {
                "status": supabase_status,
                "error": supabase_error,
            },
        },
    }


@router.get("/ready")
def readiness_check() -> Dict[str, str]:
    """
    Kubernetes readiness probe.

    Not ready while the configured session backend or JWT verification
    cannot work.
    """
    settings = get_settings()
    if settings.session_store_backend == "supabase" and get_supabase_client_optional() is None:
        return {"status": "not_ready", "reason": "database_not_configured"}
    if not settings.supabase_jwt_secret:
        return {"status": "not_ready", "reason": "auth_not_configured"}
    return {"status": "ready"}


@router.get("/live")
def liveness_check() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}
