"""
Discovery routes.

GET /api/discovery        seed-driven candidates for the swipe deck
GET /api/discovery/feed   candidates from the caller's listening history

Both exclude every track the caller has already liked or disliked in any
session.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from config.constants import DEFAULT_PIPELINE_CONFIG
from core.auth import AuthenticatedUser, require_auth
from core.logging import get_logger
from discovery.models import QualityPolicy, SeedSet
from discovery.pipeline import PipelineResult
from integrations.catalog import CatalogClient
from services.swipe_service import SwipeSessionService
from api.dependencies import build_pipeline, get_catalog_client, get_session_service


logger = get_logger(__name__)

router = APIRouter(prefix="/api/discovery", tags=["Discovery"])


def _envelope(result: PipelineResult) -> Dict[str, Any]:
    return {
        "success": True,
        "data": {
            "tracks": [t.to_response() for t in result.candidates],
            "stats": result.stats(),
        },
    }


@router.get("", summary="Swipe candidates from 1-5 seeds")
def get_candidates(
    seeds: str = Query(
        ...,
        description="Comma separated type:value seeds, e.g. artist:ID,track:ID,genre:pop",
    ),
    limit: int = Query(
        DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT, ge=1, le=DEFAULT_PIPELINE_CONFIG.MAX_LIMIT
    ),
    relaxed: bool = Query(False, description="Skip the preview/popularity quality gate"),
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
    catalog: CatalogClient = Depends(get_catalog_client),
) -> Dict[str, Any]:
    seed_set = SeedSet.parse(seeds)
    exclusion = service.exclusion_set_for(user.id)

    pipeline = build_pipeline(catalog, user.id)
    result = pipeline.generate_with_stats(
        seed_set,
        exclusion,
        limit,
        quality_policy=QualityPolicy.permissive() if relaxed else None,
        user_id=user.id,
    )
    logger.info(
        "Discovery candidates served",
        seeds=[str(s) for s in seed_set.seeds],
        excluded=len(exclusion),
        returned=result.returned,
        relaxed=relaxed,
    )
    return _envelope(result)


@router.get("/feed", summary="Swipe candidates from listening history")
def get_feed(
    limit: int = Query(
        DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT, ge=1, le=DEFAULT_PIPELINE_CONFIG.MAX_LIMIT
    ),
    user: AuthenticatedUser = Depends(require_auth),
    service: SwipeSessionService = Depends(get_session_service),
    catalog: CatalogClient = Depends(get_catalog_client),
) -> Dict[str, Any]:
    exclusion = service.exclusion_set_for(user.id)
    result = build_pipeline(catalog, user.id).discovery_feed_with_stats(user.id, exclusion, limit)
    return _envelope(result)
