"""
Candidate pipeline: seeds (or listening history) -> swipeable tracks.

Stages for generate():
1. Seed resolution   artist/track seeds -> canonical artist names (parallel,
                     a failed seed is logged and dropped)
2. Expansion         one catalog search per term, oversampled to count * 2
                     (parallel); falls back to the user's top artists when
                     no term survived resolution
3. Merge & dedup     first occurrence per normalized key, source order kept
4. Exclusion         drop anything the user already liked or disliked
5. Quality gate      injectable QualityPolicy (preview + popularity > 30)
6. Shuffle/truncate  uniform Fisher-Yates shuffle, first `count`

A short or empty list is a valid result. Only the seed count can reject a
call. There is no automatic backfill: callers wanting more re-invoke with
other seeds or a relaxed policy.

discovery_feed() replaces stages 1-2 with top artists -> similar artists ->
their top tracks and then runs stages 3-6.
"""

import math
import random
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from config.constants import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from core.errors import InvalidInput
from core.logging import get_logger
from discovery.models import (
    DEFAULT_QUALITY_POLICY,
    ArtistRef,
    CandidateTrack,
    QualityPolicy,
    SearchTerm,
    Seed,
    SeedSet,
    SeedType,
    TermKind,
)
from integrations.catalog import CatalogClient


logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Candidates plus per-stage counts for logging and the API `stats` block."""
    candidates: List[CandidateTrack] = field(default_factory=list)
    raw: int = 0
    after_dedup: int = 0
    after_exclusion: int = 0
    after_quality: int = 0
    dropped_seeds: List[str] = field(default_factory=list)
    failed_calls: int = 0
    fallback_used: bool = False
    budget_exhausted: bool = False

    @property
    def returned(self) -> int:
        return len(self.candidates)

    def stats(self) -> Dict[str, Any]:
        return {
            "raw": self.raw,
            "afterDedup": self.after_dedup,
            "afterExclusion": self.after_exclusion,
            "afterQuality": self.after_quality,
            "returned": self.returned,
            "droppedSeeds": list(self.dropped_seeds),
            "failedCalls": self.failed_calls,
            "fallbackUsed": self.fallback_used,
            "budgetExhausted": self.budget_exhausted,
        }


def dedup_by_key(tracks: Iterable[CandidateTrack]) -> List[CandidateTrack]:
    """Keep the first track per normalized key, preserving order."""
    seen: Set[str] = set()
    unique: List[CandidateTrack] = []
    for track in tracks:
        key = track.normalized_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(track)
    return unique


def apply_exclusion(tracks: Iterable[CandidateTrack], exclusion: Set[str]) -> List[CandidateTrack]:
    """Drop tracks whose normalized key (or provider id) was already judged."""
    if not exclusion:
        return list(tracks)
    return [
        t for t in tracks
        if t.normalized_key not in exclusion and t.external_id not in exclusion
    ]


class CandidatePipeline:
    """
    Stateless candidate generator over a CatalogClient.

    Usage:
        pipeline = CandidatePipeline(catalog)
        tracks = pipeline.generate(SeedSet.of(genres=["pop"]), exclusion=set(), count=20)
    """

    def __init__(
        self,
        catalog: CatalogClient,
        config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
        budget_seconds: float = 10.0,
        max_workers: int = 4,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._catalog = catalog
        self._config = config
        self._budget_seconds = budget_seconds
        self._max_workers = max(1, max_workers)
        self._rng = rng or random.Random()

    # =========================================================================
    # Public API
    # =========================================================================

    def generate(
        self,
        seeds: Union[SeedSet, Sequence[Seed]],
        exclusion: Set[str],
        count: int,
        quality_policy: Optional[QualityPolicy] = None,
        user_id: Optional[str] = None,
    ) -> List[CandidateTrack]:
        return self.generate_with_stats(
            seeds, exclusion, count, quality_policy=quality_policy, user_id=user_id
        ).candidates

    def generate_with_stats(
        self,
        seeds: Union[SeedSet, Sequence[Seed]],
        exclusion: Set[str],
        count: int,
        quality_policy: Optional[QualityPolicy] = None,
        user_id: Optional[str] = None,
    ) -> PipelineResult:
        """
        Generate up to `count` candidates from 1-5 seeds.

        Raises:
            InvalidSeedCount: 0 or more than MAX_SEEDS seeds
            InvalidInput: count < 1
        """
        if not isinstance(seeds, SeedSet):
            seeds = SeedSet(seeds=list(seeds))
        self._check_count(count)

        deadline = time.monotonic() + self._budget_seconds
        result = PipelineResult()

        terms = self._resolve_terms(seeds, deadline, result)
        if not terms:
            terms = self._fallback_terms(user_id, deadline, result)
        if not terms:
            logger.info(
                "No query terms available, returning empty candidate list",
                seeds=[str(s) for s in seeds.seeds],
                dropped_seeds=result.dropped_seeds,
            )
            return result

        raw = self._expand(terms, count * self._config.OVERSAMPLE_FACTOR, deadline, result)
        return self._finish(raw, exclusion, count, quality_policy or DEFAULT_QUALITY_POLICY, result)

    def discovery_feed(
        self,
        user_id: str,
        exclusion: Set[str],
        count: int,
        quality_policy: Optional[QualityPolicy] = None,
    ) -> List[CandidateTrack]:
        return self.discovery_feed_with_stats(
            user_id, exclusion, count, quality_policy=quality_policy
        ).candidates

    def discovery_feed_with_stats(
        self,
        user_id: str,
        exclusion: Set[str],
        count: int,
        quality_policy: Optional[QualityPolicy] = None,
    ) -> PipelineResult:
        """
        Listening-history feed: top artists -> similar artists -> their top tracks.

        History catalogs rarely carry preview assets, so the default policy
        here is permissive.
        """
        self._check_count(count)
        config = self._config
        deadline = time.monotonic() + self._budget_seconds
        result = PipelineResult()

        top_artists = self._top_artists(user_id, config.DISCOVERY_TOP_ARTISTS, deadline, result)
        if not top_artists:
            logger.info("No top artists found, returning empty feed", user_id=user_id)
            return result

        similar_batches = self._fan_out(
            [
                (f"similar:{artist.name}",
                 lambda name=artist.name: self._catalog.similar_artists(name, config.SIMILAR_PER_ARTIST))
                for artist in top_artists[:config.DISCOVERY_SEED_ARTISTS]
            ],
            deadline,
            result,
        )

        names: List[str] = []
        seen_names: Set[str] = set()
        for batch in similar_batches:
            for artist in batch or []:
                folded = artist.name.strip().lower()
                if folded and folded not in seen_names:
                    seen_names.add(folded)
                    names.append(artist.name)
        names = names[:config.DISCOVERY_MAX_ARTISTS]
        logger.debug("Similar artists collected", count=len(names), artists=names)

        track_batches = self._fan_out(
            [
                (f"top_tracks:{name}",
                 lambda name=name: self._catalog.top_tracks_for(name, config.TRACKS_PER_ARTIST))
                for name in names
            ],
            deadline,
            result,
        )
        raw = [t for batch in track_batches for t in batch or []]
        return self._finish(raw, exclusion, count, quality_policy or QualityPolicy.permissive(), result)

    # =========================================================================
    # Stages
    # =========================================================================

    def _check_count(self, count: int) -> None:
        if count < 1:
            raise InvalidInput(f"count must be at least 1, got {count}")

    def _resolve_terms(
        self, seeds: SeedSet, deadline: float, result: PipelineResult
    ) -> List[SearchTerm]:
        to_resolve = [s for s in seeds.seeds if s.type != SeedType.GENRE]
        resolved = self._fan_out(
            [(str(s), lambda s=s: self._catalog.resolve_seed(s)) for s in to_resolve],
            deadline,
            result,
        )
        names_by_seed = {str(s): name for s, name in zip(to_resolve, resolved)}

        terms: List[SearchTerm] = []
        seen: Set[Tuple[TermKind, str]] = set()
        for seed in seeds.seeds:
            if seed.type == SeedType.GENRE:
                term = SearchTerm(kind=TermKind.GENRE, value=seed.value)
            else:
                name = names_by_seed.get(str(seed))
                if not name:
                    result.dropped_seeds.append(str(seed))
                    continue
                term = SearchTerm(kind=TermKind.ARTIST, value=name)
            marker = (term.kind, term.value.lower())
            if marker not in seen:
                seen.add(marker)
                terms.append(term)

        if result.dropped_seeds:
            logger.warning(
                "Dropped unresolvable seeds",
                dropped=result.dropped_seeds,
                remaining_terms=len(terms),
            )
        return terms

    def _fallback_terms(
        self, user_id: Optional[str], deadline: float, result: PipelineResult
    ) -> List[SearchTerm]:
        if not user_id:
            return []
        artists = self._top_artists(user_id, self._config.TOP_ARTIST_FALLBACK, deadline, result)
        if artists:
            result.fallback_used = True
            logger.info("Falling back to top artists", user_id=user_id, artists=len(artists))
        return [SearchTerm(kind=TermKind.ARTIST, value=a.name) for a in artists]

    def _top_artists(
        self, user_id: str, limit: int, deadline: float, result: PipelineResult
    ) -> List[ArtistRef]:
        (artists,) = self._fan_out(
            [("top_artists", lambda: self._catalog.top_artists_for(user_id, limit))],
            deadline,
            result,
        )
        return list(artists or [])

    def _expand(
        self,
        terms: List[SearchTerm],
        raw_budget: int,
        deadline: float,
        result: PipelineResult,
    ) -> List[CandidateTrack]:
        per_term = max(1, math.ceil(raw_budget / len(terms)))
        batches = self._fan_out(
            [
                (f"search:{t.kind.value}:{t.value}",
                 lambda t=t: self._catalog.search(t, per_term))
                for t in terms
            ],
            deadline,
            result,
        )
        return [track for batch in batches for track in batch or []]

    def _finish(
        self,
        raw: List[CandidateTrack],
        exclusion: Set[str],
        count: int,
        quality_policy: QualityPolicy,
        result: PipelineResult,
    ) -> PipelineResult:
        result.raw = len(raw)

        unique = dedup_by_key(raw)
        result.after_dedup = len(unique)

        fresh = apply_exclusion(unique, exclusion)
        result.after_exclusion = len(fresh)

        playable = [t for t in fresh if quality_policy.accepts(t)]
        result.after_quality = len(playable)

        # random.shuffle is Fisher-Yates: uniform and in place
        self._rng.shuffle(playable)
        result.candidates = playable[:count]

        logger.info(
            "Candidates generated",
            raw=result.raw,
            after_dedup=result.after_dedup,
            after_exclusion=result.after_exclusion,
            after_quality=result.after_quality,
            returned=result.returned,
            requested=count,
        )
        return result

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _fan_out(
        self,
        calls: List[Tuple[str, Callable[[], Any]]],
        deadline: float,
        result: PipelineResult,
    ) -> List[Any]:
        """
        Run catalog calls in parallel, returning results in submission order.

        A branch that raises or is still running at the deadline yields None.
        """
        outputs: List[Any] = [None] * len(calls)
        if not calls:
            return outputs

        executor = ThreadPoolExecutor(max_workers=min(len(calls), self._max_workers))
        futures = {executor.submit(fn): (i, label) for i, (label, fn) in enumerate(calls)}
        try:
            for future in as_completed(futures, timeout=max(0.0, deadline - time.monotonic())):
                i, label = futures[future]
                try:
                    outputs[i] = future.result()
                except Exception as e:
                    result.failed_calls += 1
                    logger.warning(
                        "Catalog call failed",
                        call=label,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        except FuturesTimeout:
            pending = [label for f, (_, label) in futures.items() if not f.done()]
            result.budget_exhausted = True
            result.failed_calls += len(pending)
            logger.warning("Generation budget exhausted", pending=pending)
        finally:
            # Stragglers keep running in the background; their results are discarded
            executor.shutdown(wait=False, cancel_futures=True)
        return outputs
