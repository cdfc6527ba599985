"""
Pytest configuration and shared fixtures for the swipe discovery tests.
"""
import os
import sys
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

TEST_JWT_SECRET = "test-jwt-secret"

# Tests always run against the in-memory store with a known JWT secret
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["ENVIRONMENT"] = "testing"
os.environ["SESSION_STORE_BACKEND"] = "memory"
os.environ["CATALOG_PROVIDER"] = "spotify"

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

from core.errors import UpstreamDegraded
from discovery.models import ArtistRef, CandidateTrack, SearchTerm, Seed, TermKind


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def make_track(
    index: int,
    artist: str = "Test Artist",
    popularity: int = 50,
    preview: bool = True,
    title: Optional[str] = None,
    external_id: Optional[str] = None,
) -> CandidateTrack:
    """Build a CandidateTrack with sensible defaults."""
    return CandidateTrack(
        external_id=external_id or f"trk{index:04d}",
        title=title or f"Song {index}",
        artist_names=[artist],
        album_name=f"Album {index // 10}",
        album_art_url=f"https://img.example.com/{index}.jpg",
        duration_ms=180_000,
        preview_url=f"https://p.example.com/{index}.mp3" if preview else None,
        popularity=popularity,
    )


# ============================================================================
# Fixtures: Fake Catalog
# ============================================================================

class FakeCatalog:
    """
    In-memory CatalogClient.

    Search results are keyed by (term kind, lowercased term value). Any call
    whose label is in `failing` raises UpstreamDegraded; `delays` makes a
    call sleep first. Every call is recorded in `calls`.
    """

    def __init__(self) -> None:
        self.seed_names: Dict[str, str] = {}
        self.search_results: Dict[Tuple[TermKind, str], List[CandidateTrack]] = {}
        self.top_artists: Dict[str, List[ArtistRef]] = {}
        self.similar: Dict[str, List[ArtistRef]] = {}
        self.top_tracks: Dict[str, List[CandidateTrack]] = {}
        self.failing: set = set()
        self.delays: Dict[str, float] = {}
        self.calls: List[Tuple[str, object]] = []
        self._lock = threading.Lock()

    def _enter(self, label: str, arg: object) -> None:
        with self._lock:
            self.calls.append((label, arg))
        delay = self.delays.get(label)
        if delay:
            time.sleep(delay)
        if label in self.failing:
            raise UpstreamDegraded(f"fake failure: {label}")

    def calls_to(self, name: str) -> List[object]:
        return [arg for label, arg in self.calls if label.split(":", 1)[0] == name]

    # CatalogClient

    def resolve_seed(self, seed: Seed) -> str:
        self._enter(f"resolve:{seed.value}", seed)
        if seed.value not in self.seed_names:
            raise UpstreamDegraded(f"unknown seed {seed}")
        return self.seed_names[seed.value]

    def search(self, term: SearchTerm, limit: int) -> List[CandidateTrack]:
        self._enter(f"search:{term.value.lower()}", (term, limit))
        return list(self.search_results.get((term.kind, term.value.lower()), []))[:limit]

    def top_artists_for(self, user_id: str, limit: int) -> List[ArtistRef]:
        self._enter("top_artists", (user_id, limit))
        return list(self.top_artists.get(user_id, []))[:limit]

    def similar_artists(self, name: str, limit: int) -> List[ArtistRef]:
        self._enter(f"similar:{name}", (name, limit))
        return list(self.similar.get(name, []))[:limit]

    def top_tracks_for(self, artist_name: str, limit: int) -> List[CandidateTrack]:
        self._enter(f"top_tracks:{artist_name}", (artist_name, limit))
        return list(self.top_tracks.get(artist_name, []))[:limit]


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def genre_catalog(fake_catalog: FakeCatalog) -> FakeCatalog:
    """40 playable tracks split across pop (14), rock (13) and indie (13)."""
    tracks = [make_track(i, artist=f"Band {i}") for i in range(40)]
    fake_catalog.search_results[(TermKind.GENRE, "pop")] = tracks[:14]
    fake_catalog.search_results[(TermKind.GENRE, "rock")] = tracks[14:27]
    fake_catalog.search_results[(TermKind.GENRE, "indie")] = tracks[27:]
    return fake_catalog


@pytest.fixture
def make_pipeline() -> Callable:
    """Factory for a CandidatePipeline with a seeded RNG."""
    import random
    from discovery.pipeline import CandidatePipeline

    def _make(catalog, **kwargs):
        kwargs.setdefault("rng", random.Random(42))
        return CandidatePipeline(catalog, **kwargs)

    return _make


# ============================================================================
# Fixtures: Sessions
# ============================================================================

@pytest.fixture
def session_store():
    """In-memory swipe session store."""
    from services.session_store import InMemorySwipeSessionStore
    return InMemorySwipeSessionStore()


@pytest.fixture
def session_service(session_store):
    from services.swipe_service import SwipeSessionService
    return SwipeSessionService(session_store)


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    from unittest.mock import MagicMock

    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value.data = []
    return mock_client


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(session_store, session_service, fake_catalog):
    """FastAPI application wired to the in-memory store and the fake catalog."""
    from api.app import create_app
    from api.dependencies import get_catalog_client, get_session_service, get_session_store
    from config.settings import get_settings

    get_settings.cache_clear()
    application = create_app()
    application.dependency_overrides[get_session_store] = lambda: session_store
    application.dependency_overrides[get_session_service] = lambda: session_service
    application.dependency_overrides[get_catalog_client] = lambda: fake_catalog
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# JWT Token Generation
# ============================================================================

def generate_test_jwt(
    user_id: str = "test-user-001",
    exp_hours: int = 24,
    secret: str = TEST_JWT_SECRET,
    audience: str = "authenticated",
) -> str:
    """
    Generate a Supabase-style HS256 JWT for tests.

    Args:
        user_id: The user ID to include in the token
        exp_hours: Hours until token expires (negative for an expired token)
    """
    import jwt

    now = int(time.time())
    payload = {
        "sub": user_id,
        "aud": audience,
        "role": "authenticated",
        "email": f"{user_id}@test.com",
        "exp": now + (exp_hours * 3600),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers() -> dict:
    """Auth headers with a valid Bearer token for test-user-001."""
    return {"Authorization": f"Bearer {generate_test_jwt()}"}


@pytest.fixture
def other_auth_headers() -> dict:
    """Auth headers for a second user."""
    return {"Authorization": f"Bearer {generate_test_jwt('test-user-002')}"}


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
