"""
Sprint Proposal Engine - FastAPI Application Entry Point.

Turns intake form submissions into priced, catalog-grounded sprint
drafts and renders sprint agreements:
- Intake normalization and LLM proposal generation
- Deterministic sprint totals and line edits
- Deferred compensation plans and agreement composition

Run with:
    uvicorn sprint_engine.main:app --reload --port 8000
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sprint_engine import __version__
from sprint_engine.core.config import ALLOWED_MODELS, DEFAULT_MODEL, PRICING, get_settings
from sprint_engine.core.database import db_service
from sprint_engine.core.errors import SprintEngineError
from sprint_engine.api.catalog import router as catalog_router
from sprint_engine.api.intake import router as intake_router
from sprint_engine.api.sprints import router as sprints_router


# ===========================================
# Logging Configuration
# ===========================================

def setup_logging():
    """Configure application logging."""
    settings = get_settings()

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    for noisy in ("httpx", "httpcore", "urllib3", "google", "googleapiclient", "hpack"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ===========================================
# Application Lifespan
# ===========================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    logger.info("=" * 50)
    logger.info("Sprint Proposal Engine Starting Up")
    logger.info("=" * 50)
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"Default model: {settings.OPENAI_MODEL} (allowed: {', '.join(ALLOWED_MODELS)})")
    logger.info(f"Price per point: ${PRICING.price_per_point:,.0f}, hours per point: {PRICING.hours_per_point:g}")

    # Verify critical settings
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        logger.warning("Supabase credentials not configured!")

    if not settings.OPENAI_API_KEY:
        logger.warning("OpenAI API key not configured - generation will be refused")

    if settings.OPENAI_MODEL not in ALLOWED_MODELS:
        logger.warning(f"OPENAI_MODEL {settings.OPENAI_MODEL!r} is not allowed - using {DEFAULT_MODEL}")

    logger.info("Startup complete - ready to accept intake submissions")

    yield

    # Shutdown
    logger.info("Sprint Proposal Engine shutting down...")


# ===========================================
# FastAPI Application
# ===========================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Sprint Proposal Engine",
        description="""
        Catalog-grounded sprint proposals and agreements.

        ## Intake

        - `POST /webhook/intake` - Form submission to sprint draft
        - `POST /intake/preview` - Normalized client profile only
        - `GET /ai-responses/{id}` - Stored model response

        ## Sprints

        - `POST /sprints/generate` - Generate for a stored document
        - `GET /sprints/{id}` - Draft with lines and totals
        - `POST|DELETE|PATCH /sprints/{id}/deliverables/...` - Line edits
        - `POST /sprints/{id}/recalculate` - Recompute totals
        - `POST|GET /sprints/{id}/comp-plans` - Deferred compensation
        - `POST|GET /sprints/{id}/agreement` - Agreement markdown
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(intake_router)
    app.include_router(sprints_router)
    app.include_router(catalog_router)

    return app


# Create app instance
app = create_app()


# ===========================================
# Root & Health Endpoints
# ===========================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return JSONResponse({
        "service": "Sprint Proposal Engine",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "intake": {
                "webhook": "POST /webhook/intake",
                "preview": "POST /intake/preview",
                "ai_response": "GET /ai-responses/{id}"
            },
            "sprints": {
                "generate": "POST /sprints/generate",
                "get": "GET /sprints/{id}",
                "add_deliverable": "POST /sprints/{id}/deliverables",
                "remove_deliverable": "DELETE /sprints/{id}/deliverables/{deliverable_id}",
                "complexity": "PATCH /sprints/{id}/deliverables/{deliverable_id}/complexity",
                "scope": "PATCH /sprints/{id}/deliverables/{deliverable_id}/scope",
                "recalculate": "POST /sprints/{id}/recalculate",
                "comp_plans": "POST|GET /sprints/{id}/comp-plans",
                "agreement": "POST|GET /sprints/{id}/agreement"
            },
            "packages": {
                "list": "GET /packages",
                "preview": "GET /packages/{id}"
            },
            "health": "GET /health",
            "docs": "GET /docs"
        }
    })


@app.get("/health", tags=["root"])
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    database = "connected" if await db_service.health_check() else "unavailable"
    return {"status": "healthy", "service": "sprint-proposal-engine", "database": database}


# ===========================================
# Error Handlers
# ===========================================

@app.exception_handler(SprintEngineError)
async def sprint_engine_exception_handler(request: Request, exc: SprintEngineError):
    """Typed errors keep their own status and a stable error code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if get_settings().DEBUG else "An error occurred"
        }
    )


# ===========================================
# Main Entry Point
# ===========================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "sprint_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
