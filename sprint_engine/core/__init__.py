"""Core module - Configuration, database and error taxonomy."""

from sprint_engine.core.config import get_settings, Settings, PRICING, PricingConfig
from sprint_engine.core.database import DatabaseService, db_service

__all__ = [
    "get_settings",
    "Settings",
    "PRICING",
    "PricingConfig",
    "DatabaseService",
    "db_service",
]
