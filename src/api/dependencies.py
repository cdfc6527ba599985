"""
FastAPI dependencies wiring the service objects.

Stores, services and the catalog are built once per process from settings
and handed to routes through Depends(); tests replace them with
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from config.settings import get_settings
from core.logging import get_logger
from discovery.pipeline import CandidatePipeline
from integrations.catalog import CatalogClient, create_catalog_client
from services.session_store import (
    InMemorySwipeSessionStore,
    SupabaseSwipeSessionStore,
    SwipeSessionStore,
)
from services.swipe_service import SwipeSessionService


logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_session_store() -> SwipeSessionStore:
    settings = get_settings()
    if settings.session_store_backend == "supabase":
        from config.database import get_supabase_client
        logger.info("Using Supabase swipe session store", table=settings.swipe_sessions_table)
        return SupabaseSwipeSessionStore(get_supabase_client(), table=settings.swipe_sessions_table)

    logger.info("Using in-memory swipe session store")
    return InMemorySwipeSessionStore()


@lru_cache(maxsize=1)
def get_session_service() -> SwipeSessionService:
    settings = get_settings()
    return SwipeSessionService(
        get_session_store(),
        max_conflict_retries=settings.swipe_conflict_retries,
    )


@lru_cache(maxsize=1)
def get_catalog_client() -> CatalogClient:
    return create_catalog_client(get_settings())


def build_pipeline(catalog: CatalogClient, user_id: Optional[str] = None) -> CandidatePipeline:
    """Pipeline over catalog, bound to the caller's upstream credentials when the adapter supports it."""
    settings = get_settings()
    bind = getattr(catalog, "for_user", None)
    if user_id and callable(bind):
        catalog = bind(user_id)
    return CandidatePipeline(
        catalog,
        budget_seconds=settings.generate_budget_seconds,
        max_workers=settings.catalog_max_workers,
    )
