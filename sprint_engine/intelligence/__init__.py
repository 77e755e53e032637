"""Intelligence module - Prompt construction and catalog grounding."""

from sprint_engine.intelligence.prompts import (
    DEFAULT_SPRINT_SYSTEM_PROMPT,
    DEFAULT_SPRINT_USER_PROMPT,
    build_client_context,
    compose_user_prompt,
)
from sprint_engine.intelligence.grounding import build_catalog_block

__all__ = [
    "DEFAULT_SPRINT_SYSTEM_PROMPT",
    "DEFAULT_SPRINT_USER_PROMPT",
    "build_client_context",
    "compose_user_prompt",
    "build_catalog_block",
]
