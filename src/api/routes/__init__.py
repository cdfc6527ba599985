"""
Route modules for the API.

Each module exports a FastAPI APIRouter with endpoints
for a specific domain/feature.
"""

from api.routes import health
from api.routes import sessions
from api.routes import discovery

__all__ = ["health", "sessions", "discovery"]
