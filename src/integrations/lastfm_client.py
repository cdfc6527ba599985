"""Last.fm adapter for the catalog capability.

Last.fm exposes listening history (user.getTopArtists), similar artists and
per-artist/per-tag top tracks, which is what the discovery feed is built on.
It has no preview assets or popularity score; listener counts are mapped
onto the 0..100 popularity range on a log scale.
"""

from __future__ import annotations

import math
import re
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
    normalize_key,
)


logger = get_logger(__name__)

MBID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)

# 10M listeners maps to popularity 100
LISTENERS_AT_FULL_POPULARITY = 10_000_000


def popularity_from_listeners(listeners: Any) -> int:
    try:
        count = int(listeners or 0)
    except (TypeError, ValueError):
        return 0
    if count <= 0:
        return 0
    scaled = math.log10(count + 1) / math.log10(LISTENERS_AT_FULL_POPULARITY) * 100
    return max(0, min(100, round(scaled)))


def pick_image(images: Optional[List[Dict[str, str]]]) -> Optional[str]:
    """Prefer the 'large' image, fall back to the first one."""
    if not images:
        return None
    for image in images:
        if image.get("size") == "large" and image.get("#text"):
            return image["#text"]
    return images[0].get("#text") or None


def track_from_lastfm(item: Dict[str, Any], default_artist: str = "") -> CandidateTrack:
    artist = item.get("artist")
    if isinstance(artist, dict):
        artist_name = artist.get("name") or default_artist
    else:
        artist_name = str(artist) if artist else default_artist
    title = item.get("name") or ""
    album = item.get("album")
    return CandidateTrack(
        external_id=item.get("mbid") or normalize_key(artist_name, title),
        title=title,
        artist_names=[artist_name] if artist_name else [],
        album_name=(album.get("title") or "") if isinstance(album, dict) else "",
        album_art_url=pick_image(item.get("image")),
        duration_ms=int(item.get("duration") or 0) * 1000,
        preview_url=None,
        popularity=popularity_from_listeners(item.get("listeners")),
    )


def _as_list(value: Any) -> List[Dict[str, Any]]:
    # Last.fm collapses single-element arrays into an object
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return list(value)


class LastfmCatalogClient:
    """
    Catalog client backed by the Last.fm web API.

    username_for maps a service user id onto a Last.fm username; by default
    the two are the same.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        username_for: Optional[Callable[[str], str]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session or requests.Session()
        self._username_for = username_for or (lambda user_id: user_id)

    def _call(self, method: str, **params: Any) -> Dict[str, Any]:
        if not self._settings.lastfm_api_key:
            raise UpstreamDegraded("Last.fm API key is not configured")

        query = {
            "method": method,
            "api_key": self._settings.lastfm_api_key,
            "format": "json",
            **{k: str(v) for k, v in params.items() if v is not None},
        }
        try:
            resp = self._session.get(
                self._settings.lastfm_api_base_url,
                params=query,
                timeout=self._settings.catalog_request_timeout_seconds,
            )
        except requests.Timeout as e:
            raise UpstreamDegraded(f"Last.fm request timed out: {method}") from e
        except requests.RequestException as e:
            raise UpstreamDegraded(f"Last.fm request failed: {method}: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamDegraded(
                f"Last.fm request failed ({resp.status_code}): {method}",
                upstream_status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamDegraded(f"Last.fm returned a non-JSON body: {method}") from e
        if data.get("error"):
            raise UpstreamDegraded(f"Last.fm API error {data['error']}: {data.get('message', '')}")
        return data

    def resolve_seed(self, seed: Seed) -> str:
        if seed.type == SeedType.GENRE:
            return seed.value

        if seed.type == SeedType.ARTIST:
            if MBID_PATTERN.match(seed.value):
                data = self._call("artist.getInfo", mbid=seed.value)
            else:
                data = self._call("artist.getInfo", artist=seed.value)
            name = (data.get("artist") or {}).get("name")
        else:
            if MBID_PATTERN.match(seed.value):
                data = self._call("track.getInfo", mbid=seed.value)
            elif " - " in seed.value:
                artist, _, title = seed.value.partition(" - ")
                data = self._call("track.getInfo", artist=artist.strip(), track=title.strip())
            else:
                raise UpstreamDegraded(
                    f"Last.fm track seeds need an MBID or 'Artist - Title': {seed.value}"
                )
            name = ((data.get("track") or {}).get("artist") or {}).get("name")

        if not name:
            raise UpstreamDegraded(f"Last.fm returned no artist name for seed {seed}")
        return name

    def search(self, term: SearchTerm, limit: int) -> List[CandidateTrack]:
        if term.kind == TermKind.GENRE:
            data = self._call("tag.getTopTracks", tag=term.value, limit=limit)
            items = _as_list((data.get("tracks") or {}).get("track"))
            return [track_from_lastfm(t) for t in items][:limit]
        return self.top_tracks_for(term.value, limit)

    def top_artists_for(self, user_id: str, limit: int) -> List[ArtistRef]:
        data = self._call(
            "user.getTopArtists",
            user=self._username_for(user_id),
            period="3month",
            limit=limit,
        )
        return [
            ArtistRef(name=a["name"], external_id=a.get("mbid") or None)
            for a in _as_list((data.get("topartists") or {}).get("artist"))
            if a.get("name")
        ]

    def similar_artists(self, name: str, limit: int) -> List[ArtistRef]:
        data = self._call("artist.getSimilar", artist=name, limit=limit)
        return [
            ArtistRef(name=a["name"], external_id=a.get("mbid") or None)
            for a in _as_list((data.get("similarartists") or {}).get("artist"))
            if a.get("name")
        ][:limit]

    def top_tracks_for(self, artist_name: str, limit: int) -> List[CandidateTrack]:
        data = self._call("artist.getTopTracks", artist=artist_name, limit=limit)
        items = _as_list((data.get("toptracks") or {}).get("track"))
        return [track_from_lastfm(t, default_artist=artist_name) for t in items][:limit]
