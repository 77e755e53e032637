"""API module - FastAPI routers."""

from sprint_engine.api.catalog import router as catalog_router
from sprint_engine.api.intake import router as intake_router
from sprint_engine.api.sprints import router as sprints_router

__all__ = ["catalog_router", "intake_router", "sprints_router"]
