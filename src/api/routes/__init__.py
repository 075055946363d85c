"""
Route modules for the API.

Each module exports a FastAPI APIRouter with endpoints
for a specific feature.
"""

from api.routes import advisory, events, health, identity, ranking

__all__ = ["advisory", "events", "health", "identity", "ranking"]
