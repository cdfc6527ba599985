"""
Pydantic models for the swipe discovery pipeline.

Models cover:
- Seeds and seed sets used to bias candidate generation
- Candidate tracks returned to the swiping client
- Swipe sessions and their like/dislike sets
- The injectable quality gate
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config.constants import DEFAULT_PIPELINE_CONFIG
from core.errors import InvalidInput, InvalidSeedCount


# =============================================================================
# Keys
# =============================================================================

def normalize_key(artist: str, title: str) -> str:
    """
    Build the cross-source dedup/exclusion key for a song.

    The same logical song can arrive under different provider ids, so
    matching is done on lowercase "artist:title".
    """
    return f"{(artist or '').strip()}:{(title or '').strip()}".lower()


def normalize_track_key(track_key: str) -> str:
    """
    Fold a client-supplied "artist:title" key the same way normalize_key does.

    Keys without a colon are provider ids and are case-sensitive, so they are
    only stripped.
    """
    if ":" in track_key:
        artist, _, title = track_key.partition(":")
        return normalize_key(artist, title)
    return track_key.strip()


# =============================================================================
# Enums
# =============================================================================

class SeedType(str, Enum):
    ARTIST = "artist"
    TRACK = "track"
    GENRE = "genre"


class SwipeAction(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class TermKind(str, Enum):
    """What a catalog search term refers to."""
    ARTIST = "artist"
    GENRE = "genre"


# =============================================================================
# Seeds
# =============================================================================

class Seed(BaseModel):
    """A single artist id, track id or genre name."""
    type: SeedType
    value: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, raw: str) -> "Seed":
        """
        Parse "type:value" (e.g. "artist:4Z8W4fKeB5YxbusRsdQVPb", "genre:pop").

        A bare value without a known type prefix is treated as a genre.
        """
        raw = raw.strip()
        prefix, sep, rest = raw.partition(":")
        if sep and prefix.lower() in {t.value for t in SeedType}:
            if not rest.strip():
                raise InvalidInput(f"Seed '{raw}' has no value")
            return cls(type=SeedType(prefix.lower()), value=rest.strip())
        if not raw:
            raise InvalidInput("Empty seed")
        return cls(type=SeedType.GENRE, value=raw)

    def __str__(self) -> str:
        return f"{self.type.value}:{self.value}"


class SeedSet(BaseModel):
    """
    Between MIN_SEEDS and MAX_SEEDS seeds, combined across types.

    Oversized sets are rejected, never truncated.
    """
    seeds: List[Seed]

    def model_post_init(self, __context) -> None:
        config = DEFAULT_PIPELINE_CONFIG
        if not config.MIN_SEEDS <= len(self.seeds) <= config.MAX_SEEDS:
            raise InvalidSeedCount(
                f"Must provide {config.MIN_SEEDS}-{config.MAX_SEEDS} seeds total "
                f"(tracks + artists + genres), got {len(self.seeds)}"
            )

    @classmethod
    def of(
        cls,
        artist_ids: Optional[List[str]] = None,
        track_ids: Optional[List[str]] = None,
        genres: Optional[List[str]] = None,
    ) -> "SeedSet":
        seeds = (
            [Seed(type=SeedType.ARTIST, value=v) for v in artist_ids or []]
            + [Seed(type=SeedType.TRACK, value=v) for v in track_ids or []]
            + [Seed(type=SeedType.GENRE, value=v) for v in genres or []]
        )
        return cls(seeds=seeds)

    @classmethod
    def parse(cls, raw: str) -> "SeedSet":
        """Parse a comma separated "type:value" list."""
        parts = [p for p in (raw or "").split(",") if p.strip()]
        return cls(seeds=[Seed.parse(p) for p in parts])

    def __len__(self) -> int:
        return len(self.seeds)


class SearchTerm(BaseModel):
    """A resolved seed, ready to be turned into a catalog query by an adapter."""
    kind: TermKind
    value: str


# =============================================================================
# Catalog items
# =============================================================================

class ArtistRef(BaseModel):
    name: str
    external_id: Optional[str] = None


class CandidateTrack(BaseModel):
    """A track eligible for presentation to the swiping user."""
    external_id: str
    title: str
    artist_names: List[str] = Field(default_factory=list)
    album_name: str = ""
    album_art_url: Optional[str] = None
    duration_ms: int = 0
    preview_url: Optional[str] = None
    popularity: int = Field(default=0, ge=0, le=100)

    @property
    def primary_artist(self) -> str:
        return self.artist_names[0] if self.artist_names else ""

    @property
    def normalized_key(self) -> str:
        return normalize_key(self.primary_artist, self.title)

    def to_response(self) -> dict:
        return {
            "id": self.external_id,
            "key": self.normalized_key,
            "title": self.title,
            "artists": list(self.artist_names),
            "album": self.album_name,
            "albumArtUrl": self.album_art_url,
            "durationMs": self.duration_ms,
            "previewUrl": self.preview_url,
            "popularity": self.popularity,
        }


# =============================================================================
# Quality gate
# =============================================================================

@dataclass(frozen=True)
class QualityPolicy:
    """
    Filter applied after dedup and exclusion.

    The default requires a playable preview and popularity strictly above
    MIN_POPULARITY.
    """
    require_preview: bool = DEFAULT_PIPELINE_CONFIG.REQUIRE_PREVIEW
    min_popularity: Optional[int] = DEFAULT_PIPELINE_CONFIG.MIN_POPULARITY

    @classmethod
    def permissive(cls) -> "QualityPolicy":
        return cls(require_preview=False, min_popularity=None)

    def accepts(self, track: CandidateTrack) -> bool:
        if self.require_preview and not track.preview_url:
            return False
        if self.min_popularity is not None and track.popularity <= self.min_popularity:
            return False
        return True


DEFAULT_QUALITY_POLICY = QualityPolicy()


# =============================================================================
# Swipe sessions
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwipeSession(BaseModel):
    """
    One swiping run of a user.

    liked_keys and disliked_keys are always disjoint. A session with
    completed_at unset is active. version is the optimistic concurrency
    token bumped by every committed write.
    """
    id: str
    owner_id: str
    liked_keys: Set[str] = Field(default_factory=set)
    disliked_keys: Set[str] = Field(default_factory=set)
    seed_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.completed_at is None

    @property
    def judged_keys(self) -> Set[str]:
        return self.liked_keys | self.disliked_keys

    def apply_swipe(self, action: SwipeAction, track_key: str) -> None:
        """Move track_key into the set for action, removing it from the other."""
        if action == SwipeAction.LIKE:
            self.disliked_keys.discard(track_key)
            self.liked_keys.add(track_key)
        elif action == SwipeAction.DISLIKE:
            self.liked_keys.discard(track_key)
            self.disliked_keys.add(track_key)
        else:
            raise InvalidInput(f"Unknown swipe action: {action}")

    def to_response(self) -> dict:
        """Client-facing shape; sets are sorted for stable output."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "likedKeys": sorted(self.liked_keys),
            "dislikedKeys": sorted(self.disliked_keys),
            "seedIds": list(self.seed_ids),
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


class SessionStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_swipes: int = 0
    likes: int = 0
    dislikes: int = 0


class UserSwipeStats(SessionStats):
    total_sessions: int = 0


class SwipeHistoryEntry(BaseModel):
    """One judged track in a user's cross-session swipe history."""
    track_key: str
    action: SwipeAction
    session_id: str
    session_created_at: datetime

    def to_response(self) -> dict:
        return {
            "trackKey": self.track_key,
            "action": self.action.value,
            "sessionId": self.session_id,
            "sessionCreatedAt": self.session_created_at.isoformat(),
        }
