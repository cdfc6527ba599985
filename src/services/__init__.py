"""
Services module for business logic.

Provides swipe session persistence and the session service.
"""

from services.session_store import (
    InMemorySwipeSessionStore,
    SupabaseSwipeSessionStore,
    SwipeSessionStore,
)
from services.swipe_service import SwipeSessionService

__all__ = [
    "InMemorySwipeSessionStore",
    "SupabaseSwipeSessionStore",
    "SwipeSessionStore",
    "SwipeSessionService",
]
