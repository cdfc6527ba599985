"""
Swipe session service.

The one component client code calls for session work: creates sessions,
records like/dislike decisions, completes sessions and derives the
per-user exclusion set that the candidate pipeline filters against.

Every mutation is a read -> modify copy -> compare_and_set cycle against
the store. A stale base version is retried a bounded number of times and
then surfaced as Conflict.
"""

import uuid
from typing import Callable, List, Optional, Set, Tuple, Union

from config.constants import DEFAULT_SESSION_CONFIG
from core.errors import Conflict, Forbidden, InvalidInput, NotFound, StaleVersionError
from core.logging import LoggerMixin
from discovery.models import (
    SessionStats,
    SwipeAction,
    SwipeHistoryEntry,
    SwipeSession,
    UserSwipeStats,
    normalize_track_key,
    utcnow,
)
from services.session_store import SwipeSessionStore


def generate_session_id() -> str:
    return f"swp_{uuid.uuid4().hex[:16]}"


def parse_action(action: Union[SwipeAction, str]) -> SwipeAction:
    try:
        return SwipeAction(action)
    except ValueError:
        raise InvalidInput('Action must be "like" or "dislike"')


class SwipeSessionService(LoggerMixin):
    """
    Session operations with ownership checks and optimistic concurrency.

    Usage:
        service = SwipeSessionService(InMemorySwipeSessionStore())
        session = service.create("user_1", seed_ids=["track:abc"])
        service.record_swipe(session.id, "user_1", "like", "daft punk:one more time")
        exclusion = service.exclusion_set_for("user_1")
    """

    def __init__(self, store: SwipeSessionStore, max_conflict_retries: int = 3) -> None:
        self._store = store
        self._max_conflict_retries = max(0, max_conflict_retries)

    @property
    def store(self) -> SwipeSessionStore:
        return self._store

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(self, owner_id: str, seed_ids: Optional[List[str]] = None) -> SwipeSession:
        if not owner_id:
            raise InvalidInput("owner_id is required")
        session = SwipeSession(
            id=generate_session_id(),
            owner_id=owner_id,
            seed_ids=list(seed_ids or []),
        )
        created = self._store.insert(session)
        self.logger.info(
            "Swipe session created",
            session_id=created.id,
            owner_id=owner_id,
            seeds=len(created.seed_ids),
        )
        return created

    def get(self, session_id: str, caller_id: str) -> SwipeSession:
        session = self._store.get(session_id)
        if session is None:
            raise NotFound("Session not found")
        if session.owner_id != caller_id:
            self.logger.warning(
                "Session access denied",
                session_id=session_id,
                caller_id=caller_id,
            )
            raise Forbidden("Not authorized")
        return session

    def record_swipe(
        self,
        session_id: str,
        caller_id: str,
        action: Union[SwipeAction, str],
        track_key: str,
    ) -> SwipeSession:
        """
        Put track_key into the liked or disliked set, removing it from the other.

        Idempotent: repeating the same action leaves the session unchanged.
        """
        action = parse_action(action)
        key = normalize_track_key(track_key or "")
        if not key:
            raise InvalidInput("Track key required")

        session = self._update(
            session_id,
            caller_id,
            lambda s: s.apply_swipe(action, key),
            operation="record_swipe",
        )
        self.logger.info(
            "Swipe recorded",
            session_id=session_id,
            action=action.value,
            track_key=key,
            liked=len(session.liked_keys),
            disliked=len(session.disliked_keys),
        )
        return session

    def complete(self, session_id: str, caller_id: str) -> SwipeSession:
        """
        Mark the session completed.

        Completing an already completed session refreshes completed_at.
        """

        def _mark(session: SwipeSession) -> None:
            session.completed_at = utcnow()

        session = self._update(session_id, caller_id, _mark, operation="complete")
        self.logger.info(
            "Swipe session completed",
            session_id=session_id,
            liked=len(session.liked_keys),
        )
        return session

    def get_or_create_active(
        self, owner_id: str, seed_ids: Optional[List[str]] = None
    ) -> SwipeSession:
        """Latest session if it is still active, else a fresh one."""
        latest = self.latest_session(owner_id)
        if latest is not None and latest.is_active:
            return latest
        return self.create(owner_id, seed_ids)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_sessions(
        self,
        owner_id: str,
        limit: int = DEFAULT_SESSION_CONFIG.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> List[SwipeSession]:
        limit = max(1, min(limit, DEFAULT_SESSION_CONFIG.MAX_PAGE_SIZE))
        return self._store.list_for_owner(owner_id, limit=limit, offset=max(0, offset))

    def latest_session(self, owner_id: str) -> Optional[SwipeSession]:
        sessions = self._store.list_for_owner(owner_id, limit=1)
        return sessions[0] if sessions else None

    def exclusion_set_for(self, owner_id: str) -> Set[str]:
        """Every key the owner liked or disliked, across all sessions."""
        exclusion: Set[str] = set()
        for session in self._store.all_for_owner(owner_id):
            exclusion |= session.judged_keys
        return exclusion

    def history(
        self,
        owner_id: str,
        action: Optional[Union[SwipeAction, str]] = None,
        limit: int = DEFAULT_SESSION_CONFIG.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Tuple[List[SwipeHistoryEntry], int]:
        """
        Judged tracks across all of the owner's sessions, newest session first.

        A key judged in several sessions appears once, with the verdict of
        the newest session. Keys within one session are in key order.

        Returns:
            (page of entries, total entries matching the action filter)
        """
        wanted = parse_action(action) if action is not None else None
        limit = max(1, min(limit, DEFAULT_SESSION_CONFIG.MAX_PAGE_SIZE))

        entries: List[SwipeHistoryEntry] = []
        seen: Set[str] = set()
        for session in self._store.all_for_owner(owner_id):
            verdicts = [(key, SwipeAction.LIKE) for key in session.liked_keys]
            verdicts += [(key, SwipeAction.DISLIKE) for key in session.disliked_keys]
            for key, verdict in sorted(verdicts):
                if key in seen:
                    continue
                seen.add(key)
                if wanted is not None and verdict != wanted:
                    continue
                entries.append(
                    SwipeHistoryEntry(
                        track_key=key,
                        action=verdict,
                        session_id=session.id,
                        session_created_at=session.created_at,
                    )
                )

        offset = max(0, offset)
        return entries[offset:offset + limit], len(entries)

    def session_stats(self, session_id: str, caller_id: str) -> SessionStats:
        session = self.get(session_id, caller_id)
        return SessionStats(
            total_swipes=len(session.liked_keys) + len(session.disliked_keys),
            likes=len(session.liked_keys),
            dislikes=len(session.disliked_keys),
        )

    def user_stats(self, owner_id: str) -> UserSwipeStats:
        sessions = self._store.all_for_owner(owner_id)
        likes = sum(len(s.liked_keys) for s in sessions)
        dislikes = sum(len(s.disliked_keys) for s in sessions)
        return UserSwipeStats(
            total_sessions=len(sessions),
            total_swipes=likes + dislikes,
            likes=likes,
            dislikes=dislikes,
        )

    # =========================================================================
    # Read-modify-write
    # =========================================================================

    def _update(
        self,
        session_id: str,
        caller_id: str,
        mutate: Callable[[SwipeSession], None],
        operation: str,
    ) -> SwipeSession:
        for attempt in range(self._max_conflict_retries + 1):
            session = self.get(session_id, caller_id)
            base_version = session.version
            before = (set(session.liked_keys), set(session.disliked_keys), session.completed_at)

            mutate(session)

            if (session.liked_keys, session.disliked_keys, session.completed_at) == before:
                return session

            try:
                return self._store.compare_and_set(session, base_version)
            except StaleVersionError:
                self.logger.debug(
                    "Retrying stale session write",
                    session_id=session_id,
                    operation=operation,
                    attempt=attempt + 1,
                )

        self.logger.warning(
            "Session write conflict persisted",
            session_id=session_id,
            operation=operation,
            retries=self._max_conflict_retries,
        )
        raise Conflict("Session was modified concurrently, please retry")
