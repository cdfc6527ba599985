"""
Swipe discovery domain: seeds, candidate tracks, swipe sessions and the
candidate pipeline (discovery.pipeline).
"""

from discovery.models import (
    CandidateTrack,
    QualityPolicy,
    Seed,
    SeedSet,
    SeedType,
    SwipeAction,
    SwipeHistoryEntry,
    SwipeSession,
    normalize_key,
    normalize_track_key,
)

__all__ = [
    "CandidateTrack",
    "QualityPolicy",
    "Seed",
    "SeedSet",
    "SeedType",
    "SwipeAction",
    "SwipeHistoryEntry",
    "SwipeSession",
    "normalize_key",
    "normalize_track_key",
]
