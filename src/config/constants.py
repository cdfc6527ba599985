"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass


# =============================================================================
# Candidate Pipeline Configuration
# =============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the candidate pipeline."""

    # Seed bounds (combined across artist/track/genre seeds)
    MIN_SEEDS: int = 1
    MAX_SEEDS: int = 5

    # Raw results requested per call = count * OVERSAMPLE_FACTOR
    OVERSAMPLE_FACTOR: int = 2

    # Default quality gate
    MIN_POPULARITY: int = 30
    REQUIRE_PREVIEW: bool = True

    # Fallback when every seed failed to resolve
    TOP_ARTIST_FALLBACK: int = 5

    # Listening-history discovery feed
    DISCOVERY_TOP_ARTISTS: int = 5
    DISCOVERY_SEED_ARTISTS: int = 3
    SIMILAR_PER_ARTIST: int = 3
    DISCOVERY_MAX_ARTISTS: int = 5
    TRACKS_PER_ARTIST: int = 5

    # Feed limits
    DEFAULT_LIMIT: int = 20
    MAX_LIMIT: int = 50


# Default pipeline config instance
DEFAULT_PIPELINE_CONFIG = PipelineConfig()


# =============================================================================
# Swipe Session Configuration
# =============================================================================

@dataclass(frozen=True)
class SessionConfig:
    """Configuration for swipe session listing."""

    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100


DEFAULT_SESSION_CONFIG = SessionConfig()
