"""Spotify Web API adapter for the catalog capability."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import requests

from config.settings import Settings, get_settings
from core.errors import UpstreamDegraded
from core.logging import get_logger
from discovery.models import (
    ArtistRef,
    CandidateTrack,
    SearchTerm,
    Seed,
    SeedType,
    TermKind,
)


logger = get_logger(__name__)

# Spotify caps search and top-items pages at 50
SPOTIFY_PAGE_LIMIT = 50

TokenProvider = Callable[[Optional[str]], str]


def static_token_provider(token: str) -> TokenProvider:
    """Token provider that hands out one configured token (local/dev)."""

    def _provider(user_id: Optional[str]) -> str:
        if not token:
            raise UpstreamDegraded("Spotify access token is not configured")
        return token

    return _provider


def track_from_spotify(item: Dict[str, Any]) -> CandidateTrack:
    """Map a Spotify track object onto CandidateTrack."""
    album = item.get("album") or {}
    images = album.get("images") or []
    return CandidateTrack(
        external_id=item.get("id") or "",
        title=item.get("name") or "",
        artist_names=[a.get("name", "") for a in item.get("artists") or []],
        album_name=album.get("name") or "",
        album_art_url=images[0].get("url") if images else None,
        duration_ms=int(item.get("duration_ms") or 0),
        preview_url=item.get("preview_url"),
        popularity=max(0, min(100, int(item.get("popularity") or 0))),
    )


def build_search_query(term: SearchTerm) -> str:
    """Spotify field-filter syntax: artist:"x" or genre:"x"."""
    value = term.value.replace('"', "")
    if term.kind == TermKind.GENRE:
        return f'genre:"{value}"'
    return f'artist:"{value}"'


class SpotifyCatalogClient:
    """
    Catalog client backed by the Spotify Web API.

    Access tokens come from token_provider(user_id); issuing and refreshing
    them is the auth layer's job. Use for_user() to get a client whose
    calls are made with a specific user's token.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        user_id: Optional[str] = None,
        market: str = "US",
    ) -> None:
        self._settings = settings or get_settings()
        self._token_provider = token_provider
        self._session = session or requests.Session()
        self._user_id = user_id
        self._market = market

    def for_user(self, user_id: Optional[str]) -> "SpotifyCatalogClient":
        return SpotifyCatalogClient(
            token_provider=self._token_provider,
            settings=self._settings,
            session=self._session,
            user_id=user_id,
            market=self._market,
        )

    # ---------------------------------------------------------------------
    # Transport
    # ---------------------------------------------------------------------

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        token = self._token_provider(user_id or self._user_id)
        url = f"{self._settings.spotify_api_base_url}{path}"
        try:
            resp = self._session.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._settings.catalog_request_timeout_seconds,
            )
        except requests.Timeout as e:
            raise UpstreamDegraded(f"Spotify request timed out: {path}") from e
        except requests.RequestException as e:
            raise UpstreamDegraded(f"Spotify request failed: {path}: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamDegraded(
                f"Spotify request failed ({resp.status_code}): {path}",
                upstream_status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamDegraded(f"Spotify returned a non-JSON body: {path}") from e

    def _find_artist_id(self, name: str) -> Optional[str]:
        data = self._get(
            "/search",
            params={"q": f'artist:"{name}"', "type": "artist", "limit": 1},
        )
        items = (data.get("artists") or {}).get("items") or []
        return items[0].get("id") if items else None

    # ---------------------------------------------------------------------
    # CatalogClient
    # ---------------------------------------------------------------------

    def resolve_seed(self, seed: Seed) -> str:
        if seed.type == SeedType.ARTIST:
            data = self._get(f"/artists/{seed.value}")
            name = data.get("name")
        elif seed.type == SeedType.TRACK:
            data = self._get(f"/tracks/{seed.value}")
            artists = data.get("artists") or []
            name = artists[0].get("name") if artists else None
        else:
            return seed.value

        if not name:
            raise UpstreamDegraded(f"Spotify returned no artist name for seed {seed}")
        return name

    def search(self, term: SearchTerm, limit: int) -> List[CandidateTrack]:
        query = build_search_query(term)
        tracks: List[CandidateTrack] = []
        offset = 0
        while len(tracks) < limit:
            page_size = min(SPOTIFY_PAGE_LIMIT, limit - len(tracks))
            data = self._get(
                "/search",
                params={"q": query, "type": "track", "limit": page_size, "offset": offset},
            )
            page = data.get("tracks") or {}
            items = page.get("items") or []
            tracks.extend(track_from_spotify(item) for item in items if item)
            if not items or not page.get("next"):
                break
            offset += len(items)

        logger.debug("Spotify search", query=query, requested=limit, returned=len(tracks))
        return tracks[:limit]

    def top_artists_for(self, user_id: str, limit: int) -> List[ArtistRef]:
        data = self._get(
            "/me/top/artists",
            params={"limit": min(limit, SPOTIFY_PAGE_LIMIT), "time_range": "medium_term"},
            user_id=user_id,
        )
        return [
            ArtistRef(name=a["name"], external_id=a.get("id"))
            for a in data.get("items") or []
            if a.get("name")
        ]

    def similar_artists(self, name: str, limit: int) -> List[ArtistRef]:
        artist_id = self._find_artist_id(name)
        if not artist_id:
            return []
        data = self._get(f"/artists/{artist_id}/related-artists")
        return [
            ArtistRef(name=a["name"], external_id=a.get("id"))
            for a in (data.get("artists") or [])[:limit]
            if a.get("name")
        ]

    def top_tracks_for(self, artist_name: str, limit: int) -> List[CandidateTrack]:
        artist_id = self._find_artist_id(artist_name)
        if not artist_id:
            return []
        data = self._get(f"/artists/{artist_id}/top-tracks", params={"market": self._market})
        return [track_from_spotify(t) for t in (data.get("tracks") or [])[:limit] if t]
