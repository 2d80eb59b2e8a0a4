"""
Arkcutt Routing API
FastAPI application that classifies inbound emails and tells Fin how to route them.
"""

import logging
import os
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app.routers import fin
from app.db import supabase_admin
from app.services.routing_rules import get_routing_rules

# Configure logging to output to console
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Arkcutt Routing API",
    description="Inbound email classification and routing for the Arkcutt quotation desk",
    version="0.1.0",
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (the Next.js dashboard in dev).
    Additional origins are read from the CORS_ORIGINS environment variable
    as a comma-separated list, e.g.:
        CORS_ORIGINS=https://dashboard.arkcutt.com,https://preview.arkcutt.com

    Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(fin.router, prefix="/api/fin", tags=["fin"])


@app.on_event("startup")
async def load_rules_on_startup() -> None:
    """
    Load the routing rules once so the first classification does not pay
    for it, and log what was loaded.
    """
    rules = get_routing_rules()
    logger.info(
        "Routing rules loaded: %d spam indicators, %d scope categories, %d intent keywords",
        len(rules.spam_indicators),
        len(rules.scope_categories),
        len(rules.intent_keywords),
    )
    if supabase_admin is None:
        logger.warning(
            "SUPABASE_SERVICE_KEY is not configured: lookups will fail and every "
            "email will be escalated"
        )


@app.get("/")
async def root():
    return {"message": "Arkcutt Routing API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (SELECT 1 row from provider_contacts) to
    verify that the admin client can reach the database. Returns 503 on failure.
    """
    if supabase_admin is None:
        raise HTTPException(
            status_code=503,
            detail="Database client unavailable: SUPABASE_SERVICE_KEY is not configured",
        )

    try:
        supabase_admin.table("provider_contacts").select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
