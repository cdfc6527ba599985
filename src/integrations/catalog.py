"""
Music catalog capability.

The candidate pipeline only talks to this interface; adapters
(spotify_client, lastfm_client) own the upstream field names, query syntax
and pagination. Every method may raise UpstreamDegraded.
"""

from typing import List, Protocol

from config.settings import Settings, get_settings
from discovery.models import ArtistRef, CandidateTrack, SearchTerm, Seed


class CatalogClient(Protocol):
    """Protocol for the external music catalog."""

    def resolve_seed(self, seed: Seed) -> str:
        """Return the canonical artist name behind an artist or track seed."""
        ...

    def search(self, term: SearchTerm, limit: int) -> List[CandidateTrack]:
        """Return up to limit tracks matching an artist or genre term."""
        ...

    def top_artists_for(self, user_id: str, limit: int) -> List[ArtistRef]:
        """Return the user's most listened artists."""
        ...

    def similar_artists(self, name: str, limit: int) -> List[ArtistRef]:
        ...

    def top_tracks_for(self, artist_name: str, limit: int) -> List[CandidateTrack]:
        ...


def create_catalog_client(settings: Settings = None) -> CatalogClient:
    """Build the adapter selected by settings.catalog_provider."""
    settings = settings or get_settings()
    if settings.catalog_provider == "lastfm":
        from integrations.lastfm_client import LastfmCatalogClient
        return LastfmCatalogClient(settings=settings)

    from integrations.spotify_client import SpotifyCatalogClient, static_token_provider
    return SpotifyCatalogClient(
        token_provider=static_token_provider(settings.spotify_access_token),
        settings=settings,
    )
