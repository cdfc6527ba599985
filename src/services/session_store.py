"""
Swipe session persistence.

Two backends share the SwipeSessionStore protocol:
1. InMemorySwipeSessionStore: for development/testing (default)
2. SupabaseSwipeSessionStore: `swipe_sessions` table for production

Writes are conditional on the session's version (optimistic concurrency):
compare_and_set() commits only if the stored version still equals the
version the caller read, and bumps it. A stale write raises
StaleVersionError instead of overwriting.
"""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from core.errors import StaleVersionError
from core.logging import LoggerMixin
from discovery.models import SwipeSession, utcnow


class SwipeSessionStore(Protocol):
    """Protocol for swipe session persistence, keyed by id with an owner index."""

    def insert(self, session: SwipeSession) -> SwipeSession:
        ...

    def get(self, session_id: str) -> Optional[SwipeSession]:
        ...

    def list_for_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[SwipeSession]:
        """Owner's sessions, newest first."""
        ...

    def all_for_owner(self, owner_id: str) -> List[SwipeSession]:
        ...

    def count_for_owner(self, owner_id: str) -> int:
        ...

    def compare_and_set(self, session: SwipeSession, expected_version: int) -> SwipeSession:
        """Persist session if the stored version equals expected_version; return it with the bumped version."""
        ...

    def get_stats(self) -> Dict[str, Any]:
        ...


# =============================================================================
# In-Memory Backend (Default)
# =============================================================================

class InMemorySwipeSessionStore(LoggerMixin):
    """
    Thread-safe in-memory swipe session storage.

    Sessions are lost on restart. Every read returns a deep copy so callers
    can only change stored state through compare_and_set().
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: Dict[str, SwipeSession] = {}
        self._by_owner: Dict[str, List[str]] = {}

    def insert(self, session: SwipeSession) -> SwipeSession:
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session {session.id} already exists")
            self._sessions[session.id] = session.model_copy(deep=True)
            self._by_owner.setdefault(session.owner_id, []).append(session.id)
        return session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[SwipeSession]:
        with self._lock:
            stored = self._sessions.get(session_id)
            return stored.model_copy(deep=True) if stored else None

    def _owned(self, owner_id: str) -> List[SwipeSession]:
        # Newest first; insertion order breaks created_at ties
        ids = self._by_owner.get(owner_id, [])
        ordered = sorted(
            enumerate(ids),
            key=lambda pair: (self._sessions[pair[1]].created_at, pair[0]),
            reverse=True,
        )
        return [self._sessions[sid] for _, sid in ordered]

    def list_for_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[SwipeSession]:
        with self._lock:
            page = self._owned(owner_id)[offset:offset + limit]
            return [s.model_copy(deep=True) for s in page]

    def all_for_owner(self, owner_id: str) -> List[SwipeSession]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self._owned(owner_id)]

    def count_for_owner(self, owner_id: str) -> int:
        with self._lock:
            return len(self._by_owner.get(owner_id, []))

    def compare_and_set(self, session: SwipeSession, expected_version: int) -> SwipeSession:
        with self._lock:
            stored = self._sessions.get(session.id)
            if stored is None or stored.version != expected_version:
                self.logger.debug(
                    "Stale swipe session write",
                    session_id=session.id,
                    expected_version=expected_version,
                    stored_version=stored.version if stored else None,
                )
                raise StaleVersionError(session.id, expected_version)
            committed = session.model_copy(deep=True)
            committed.version = expected_version + 1
            self._sessions[session.id] = committed
            return committed.model_copy(deep=True)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": "in_memory",
                "sessions": len(self._sessions),
                "owners": len(self._by_owner),
            }


# =============================================================================
# Supabase Backend (production)
# =============================================================================

def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def session_to_row(session: SwipeSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "user_id": session.owner_id,
        "liked_keys": sorted(session.liked_keys),
        "disliked_keys": sorted(session.disliked_keys),
        "seed_ids": list(session.seed_ids),
        "created_at": session.created_at.isoformat(),
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
        "version": session.version,
    }


def session_from_row(row: Dict[str, Any]) -> SwipeSession:
    return SwipeSession(
        id=row["id"],
        owner_id=row["user_id"],
        liked_keys=set(row.get("liked_keys") or []),
        disliked_keys=set(row.get("disliked_keys") or []),
        seed_ids=list(row.get("seed_ids") or []),
        created_at=_parse_ts(row.get("created_at")) or utcnow(),
        completed_at=_parse_ts(row.get("completed_at")),
        version=int(row.get("version") or 0),
    )


class SupabaseSwipeSessionStore(LoggerMixin):
    """
    Swipe sessions in a Supabase (Postgres) table.

    Expected columns: id text pk, user_id text (indexed), liked_keys text[],
    disliked_keys text[], seed_ids text[], created_at timestamptz,
    completed_at timestamptz null, version int.
    """

    def __init__(self, client, table: str = "swipe_sessions") -> None:
        self._client = client
        self._table = table

    def insert(self, session: SwipeSession) -> SwipeSession:
        result = self._client.table(self._table).insert(session_to_row(session)).execute()
        if not result.data:
            raise RuntimeError(f"Failed to create swipe session {session.id}")
        return session_from_row(result.data[0])

    def get(self, session_id: str) -> Optional[SwipeSession]:
        result = (
            self._client.table(self._table)
            .select("*")
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if result.data:
            return session_from_row(result.data[0])
        return None

    def list_for_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[SwipeSession]:
        result = (
            self._client.table(self._table)
            .select("*")
            .eq("user_id", owner_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [session_from_row(row) for row in result.data or []]

    def all_for_owner(self, owner_id: str) -> List[SwipeSession]:
        result = (
            self._client.table(self._table)
            .select("*")
            .eq("user_id", owner_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [session_from_row(row) for row in result.data or []]

    def count_for_owner(self, owner_id: str) -> int:
        result = (
            self._client.table(self._table)
            .select("id", count="exact")
            .eq("user_id", owner_id)
            .execute()
        )
        return result.count or 0

    def compare_and_set(self, session: SwipeSession, expected_version: int) -> SwipeSession:
        row = session_to_row(session)
        row["version"] = expected_version + 1
        result = (
            self._client.table(self._table)
            .update(row)
            .eq("id", session.id)
            .eq("version", expected_version)
            .execute()
        )
        # No row matched: someone else committed first
        if not result.data:
            self.logger.debug(
                "Stale swipe session write",
                session_id=session.id,
                expected_version=expected_version,
            )
            raise StaleVersionError(session.id, expected_version)
        return session_from_row(result.data[0])

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "supabase", "table": self._table}
