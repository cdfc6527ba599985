"""
Tests for SwipeSessionService.

Covers:
- like/dislike mutual exclusion, idempotence and toggling
- ownership checks
- optimistic-concurrency retry and Conflict
- completion, exclusion set and stats
- cross-session history
"""

import threading

import pytest

from core.errors import Conflict, Forbidden, InvalidInput, NotFound, StaleVersionError
from discovery.models import SwipeAction
from services.session_store import InMemorySwipeSessionStore
from services.swipe_service import SwipeSessionService, generate_session_id


OWNER = "user-1"


class FlakyStore(InMemorySwipeSessionStore):
    """Store whose first `stale_writes` compare_and_set calls lose the race."""

    def __init__(self, stale_writes: int) -> None:
        super().__init__()
        self.stale_writes = stale_writes
        self.cas_calls = 0

    def compare_and_set(self, session, expected_version):
        self.cas_calls += 1
        if self.cas_calls <= self.stale_writes:
            raise StaleVersionError(session.id, expected_version)
        return super().compare_and_set(session, expected_version)


class TestCreateAndGet:

    def test_create(self, session_service):
        session = session_service.create(OWNER, seed_ids=["track:1"])

        assert session.id.startswith("swp_")
        assert session.owner_id == OWNER
        assert session.seed_ids == ["track:1"]
        assert session.is_active
        assert session.liked_keys == set() and session.disliked_keys == set()

    def test_create_requires_owner(self, session_service):
        with pytest.raises(InvalidInput):
            session_service.create("")

    def test_session_ids_are_unique(self):
        assert len({generate_session_id() for _ in range(100)}) == 100

    def test_get_unknown_session(self, session_service):
        with pytest.raises(NotFound):
            session_service.get("swp_missing", OWNER)

    def test_get_by_other_user_forbidden(self, session_service):
        session = session_service.create(OWNER)
        with pytest.raises(Forbidden):
            session_service.get(session.id, "intruder")


class TestRecordSwipe:

    def test_like_then_dislike_scenario(self, session_service):
        session = session_service.create(OWNER)

        session_service.record_swipe(session.id, OWNER, "like", "a")
        session_service.record_swipe(session.id, OWNER, "like", "b")
        final = session_service.record_swipe(session.id, OWNER, "dislike", "a")

        assert final.liked_keys == {"b"}
        assert final.disliked_keys == {"a"}

    def test_toggle_dislike_to_like(self, session_service):
        session = session_service.create(OWNER)

        session_service.record_swipe(session.id, OWNER, SwipeAction.DISLIKE, "x")
        final = session_service.record_swipe(session.id, OWNER, SwipeAction.LIKE, "x")

        assert final.liked_keys == {"x"}
        assert "x" not in final.disliked_keys

    def test_repeated_swipe_is_idempotent(self, session_service, session_store):
        session = session_service.create(OWNER)

        once = session_service.record_swipe(session.id, OWNER, "like", "x")
        twice = session_service.record_swipe(session.id, OWNER, "like", "x")

        assert twice.liked_keys == once.liked_keys == {"x"}
        # The no-op swipe does not write
        assert session_store.get(session.id).version == once.version == 1

    def test_keys_are_normalized(self, session_service):
        session = session_service.create(OWNER)

        final = session_service.record_swipe(session.id, OWNER, "like", "  Daft Punk : One More Time ")

        assert final.liked_keys == {"daft punk:one more time"}

    def test_provider_ids_keep_case(self, session_service):
        session = session_service.create(OWNER)
        final = session_service.record_swipe(session.id, OWNER, "like", " 4uLU6hMCjMI75M1A2tKUQC ")
        assert final.liked_keys == {"4uLU6hMCjMI75M1A2tKUQC"}

    def test_invalid_action(self, session_service):
        session = session_service.create(OWNER)
        with pytest.raises(InvalidInput):
            session_service.record_swipe(session.id, OWNER, "superlike", "x")

    def test_empty_key(self, session_service):
        session = session_service.create(OWNER)
        with pytest.raises(InvalidInput):
            session_service.record_swipe(session.id, OWNER, "like", "   ")

    def test_swipe_by_other_user_forbidden(self, session_service, session_store):
        session = session_service.create(OWNER)

        with pytest.raises(Forbidden):
            session_service.record_swipe(session.id, "intruder", "like", "x")
        assert session_store.get(session.id).liked_keys == set()

    def test_swipe_on_unknown_session(self, session_service):
        with pytest.raises(NotFound):
            session_service.record_swipe("swp_missing", OWNER, "like", "x")

    def test_sets_stay_disjoint_under_concurrent_toggles(self, session_service):
        session = session_service.create(OWNER)
        actions = [SwipeAction.LIKE, SwipeAction.DISLIKE] * 10
        errors = []

        def swipe(action):
            try:
                session_service.record_swipe(session.id, OWNER, action, "k")
            except Conflict as e:
                errors.append(e)

        threads = [threading.Thread(target=swipe, args=(a,)) for a in actions]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = session_service.get(session.id, OWNER)
        assert not final.liked_keys & final.disliked_keys
        assert len(final.judged_keys) == 1


class TestOptimisticConcurrency:

    def test_stale_write_is_retried(self):
        store = FlakyStore(stale_writes=2)
        service = SwipeSessionService(store, max_conflict_retries=3)
        session = service.create(OWNER)

        final = service.record_swipe(session.id, OWNER, "like", "x")

        assert final.liked_keys == {"x"}
        assert store.cas_calls == 3

    def test_conflict_after_retries_exhausted(self):
        store = FlakyStore(stale_writes=10)
        service = SwipeSessionService(store, max_conflict_retries=2)
        session = service.create(OWNER)

        with pytest.raises(Conflict):
            service.record_swipe(session.id, OWNER, "like", "x")
        assert store.cas_calls == 3
        assert store.get(session.id).liked_keys == set()

    def test_concurrent_swipes_on_distinct_tracks_are_all_kept(self):
        service = SwipeSessionService(InMemorySwipeSessionStore(), max_conflict_retries=100)
        session = service.create(OWNER)
        keys = [f"artist {i}:song {i}" for i in range(50)]
        start = threading.Barrier(len(keys))
        recorded, conflicts = [], []

        def swipe(key):
            start.wait()
            try:
                service.record_swipe(session.id, OWNER, "like", key)
                recorded.append(key)
            except Conflict:
                conflicts.append(key)

        threads = [threading.Thread(target=swipe, args=(k,)) for k in keys]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = service.get(session.id, OWNER)
        assert len(recorded) + len(conflicts) == len(keys)
        assert set(recorded) <= final.liked_keys
        assert final.liked_keys <= set(keys)
        assert final.version == len(recorded)


class TestComplete:

    def test_complete_sets_timestamp(self, session_service):
        session = session_service.create(OWNER)

        completed = session_service.complete(session.id, OWNER)

        assert completed.completed_at is not None
        assert not completed.is_active

    def test_recompletion_refreshes_timestamp(self, session_service):
        session = session_service.create(OWNER)
        first = session_service.complete(session.id, OWNER)

        second = session_service.complete(session.id, OWNER)

        assert second.completed_at is not None
        assert second.completed_at >= first.completed_at

    def test_complete_by_other_user_forbidden(self, session_service):
        session = session_service.create(OWNER)
        with pytest.raises(Forbidden):
            session_service.complete(session.id, "intruder")

    def test_get_or_create_active(self, session_service):
        first = session_service.get_or_create_active(OWNER)
        assert session_service.get_or_create_active(OWNER).id == first.id

        session_service.complete(first.id, OWNER)
        fresh = session_service.get_or_create_active(OWNER)

        assert fresh.id != first.id
        assert fresh.is_active


class TestExclusionAndStats:

    def test_exclusion_is_union_across_sessions(self, session_service):
        s1 = session_service.create(OWNER)
        s2 = session_service.create(OWNER)
        other = session_service.create("user-2")
        session_service.record_swipe(s1.id, OWNER, "like", "a:1")
        session_service.record_swipe(s1.id, OWNER, "dislike", "b:2")
        session_service.record_swipe(s2.id, OWNER, "like", "c:3")
        session_service.record_swipe(other.id, "user-2", "like", "z:9")

        assert session_service.exclusion_set_for(OWNER) == {"a:1", "b:2", "c:3"}

    def test_exclusion_empty_for_new_user(self, session_service):
        assert session_service.exclusion_set_for("nobody") == set()

    def test_session_stats(self, session_service):
        session = session_service.create(OWNER)
        for key in ["a", "b"]:
            session_service.record_swipe(session.id, OWNER, "like", key)
        session_service.record_swipe(session.id, OWNER, "dislike", "c")

        stats = session_service.session_stats(session.id, OWNER)

        assert (stats.total_swipes, stats.likes, stats.dislikes) == (3, 2, 1)
        assert stats.model_dump(by_alias=True)["totalSwipes"] == 3

    def test_user_stats(self, session_service):
        s1 = session_service.create(OWNER)
        s2 = session_service.create(OWNER)
        session_service.record_swipe(s1.id, OWNER, "like", "a")
        session_service.record_swipe(s2.id, OWNER, "dislike", "b")

        stats = session_service.user_stats(OWNER)

        assert stats.total_sessions == 2
        assert (stats.total_swipes, stats.likes, stats.dislikes) == (2, 1, 1)

    def test_list_sessions_clamps_page(self, session_service):
        for _ in range(3):
            session_service.create(OWNER)

        assert len(session_service.list_sessions(OWNER, limit=0)) == 1
        assert len(session_service.list_sessions(OWNER, limit=1000)) == 3
        assert session_service.latest_session("nobody") is None


class TestHistory:

    @pytest.fixture
    def judged(self, session_service):
        older = session_service.create(OWNER)
        newer = session_service.create(OWNER)
        session_service.record_swipe(older.id, OWNER, "like", "a:1")
        session_service.record_swipe(older.id, OWNER, "like", "b:2")
        session_service.record_swipe(older.id, OWNER, "dislike", "c:3")
        session_service.record_swipe(newer.id, OWNER, "dislike", "a:1")
        session_service.record_swipe(newer.id, OWNER, "like", "d:4")
        return older, newer

    def test_newest_session_first(self, session_service, judged):
        older, newer = judged

        entries, total = session_service.history(OWNER)

        assert total == 4
        assert [(e.track_key, e.session_id) for e in entries] == [
            ("a:1", newer.id),
            ("d:4", newer.id),
            ("b:2", older.id),
            ("c:3", older.id),
        ]

    def test_newest_verdict_wins(self, session_service, judged):
        entries, _ = session_service.history(OWNER)

        verdicts = {e.track_key: e.action for e in entries}
        assert verdicts["a:1"] == SwipeAction.DISLIKE

    def test_action_filter(self, session_service, judged):
        liked, total = session_service.history(OWNER, action="like")
        disliked, _ = session_service.history(OWNER, action=SwipeAction.DISLIKE)

        assert [e.track_key for e in liked] == ["d:4", "b:2"]
        assert total == 2
        assert [e.track_key for e in disliked] == ["a:1", "c:3"]

    def test_pagination(self, session_service, judged):
        page, total = session_service.history(OWNER, limit=2, offset=1)

        assert [e.track_key for e in page] == ["d:4", "b:2"]
        assert total == 4

    def test_invalid_action_filter(self, session_service):
        with pytest.raises(InvalidInput):
            session_service.history(OWNER, action="superlike")

    def test_empty_for_new_user(self, session_service):
        assert session_service.history("nobody") == ([], 0)

    def test_entry_response_shape(self, session_service, judged):
        entries, _ = session_service.history(OWNER, limit=1)

        body = entries[0].to_response()

        assert body["trackKey"] == "a:1"
        assert body["action"] == "dislike"
        assert set(body) == {"trackKey", "action", "sessionId", "sessionCreatedAt"}
