"""Configuration management for the Sprint Proposal Engine."""

from functools import lru_cache
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ===========================================
    # Supabase Configuration
    # ===========================================
    SUPABASE_URL: str = Field(default="", description="Supabase project URL")
    SUPABASE_KEY: str = Field(default="", description="Supabase service key")

    # ===========================================
    # OpenAI Configuration
    # ===========================================
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    OPENAI_PROJECT_ID: str = Field(default="", description="Optional OpenAI project header")
    OPENAI_ORG_ID: str = Field(default="", description="Optional OpenAI organization header")
    OPENAI_API_URL: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API base URL"
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Default proposal model")
    OPENAI_TEMPERATURE: float = Field(default=0.2, description="Sampling temperature")
    OPENAI_MAX_TOKENS: int = Field(default=2000, description="Max completion tokens")
    OPENAI_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Hard wall-clock budget for one completion request"
    )

    # ===========================================
    # Proposal Generation Limits
    # ===========================================
    MAX_DOCUMENT_CHARS: int = Field(
        default=100_000,
        description="Largest serialized intake document sent to the model"
    )
    CATALOG_DELIVERABLE_LIMIT: int = Field(default=50, description="Deliverables in grounding block")
    CATALOG_PACKAGE_LIMIT: int = Field(default=20, description="Packages in grounding block")

    # ===========================================
    # Google Service Account Configuration (Gmail)
    # ===========================================
    GOOGLE_CREDENTIALS_PATH: str = Field(
        default="./credentials/google-service-account.json",
        description="Path to Google service account JSON"
    )
    EMAIL_SENDER: str = Field(
        default="studio@example.com",
        description="Mailbox the service account sends as"
    )

    # ===========================================
    # Agreement Parties
    # ===========================================
    STUDIO_LEGAL_NAME: str = Field(default="Chris Meisner LLC", description="Designer party")
    STUDIO_SIGNATORY: str = Field(default="Chris Meisner", description="Designer signatory")
    STUDIO_SIGNATORY_TITLE: str = Field(default="Principal", description="Signatory title")
    STUDIO_JURISDICTION: str = Field(
        default="Commonwealth of Pennsylvania",
        description="Governing law named in agreements"
    )

    # ===========================================
    # Server Configuration
    # ===========================================
    BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Public base URL used in notification links"
    )
    DEBUG: bool = Field(default=True, description="Debug mode")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def public_base_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.BASE_URL.rstrip("/")


# ===========================================
# Model Allow-List
# ===========================================

ALLOWED_MODELS: Tuple[str, ...] = ("gpt-4o-mini", "gpt-4o")
DEFAULT_MODEL = "gpt-4o-mini"


def resolve_model(requested: Optional[str], default: Optional[str] = None) -> str:
    """
    Map a requested model onto the allow-list.

    Args:
        requested: Model identifier from the caller (may be None)
        default: Configured default model, used when ``requested`` is off-list

    Returns:
        The requested model if allowed, else the configured default if
        allowed, else DEFAULT_MODEL
    """
    if requested and requested in ALLOWED_MODELS:
        return requested
    if default and default in ALLOWED_MODELS:
        return default
    return DEFAULT_MODEL


# ===========================================
# Pricing Configuration
# ===========================================

class PricingConfig(BaseModel):
    """Conversion constants shared by the totals engine and the agreement composer."""

    model_config = {"frozen": True}

    base_fee: float = 0.0
    price_per_point: float = 1750.0
    hours_per_point: float = 10.0
    default_upfront_fraction: float = 0.5
    # Amounts at or below this are treated as zero when rendering payment rows
    zero_epsilon: float = 0.01
    full_upfront_threshold: float = 0.99


PRICING = PricingConfig()


# Valid complexity multipliers and their labels
COMPLEXITY_LEVELS: Dict[float, str] = {
    0.75: "Simple",
    1.0: "Normal",
    1.5: "Complex",
    2.0: "Very Complex",
}


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
