from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from sqlalchemy import text
from typing import List
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from app.database import get_db, engine, Base
from app import models  # noqa: F401  registers tables on Base.metadata
from app.config import get_settings, get_cors_origins
from app.services.cache_service import CacheService
from app.services.llm_service import LLMService
from app.services.meta_ads_service import CachedMetaAdsService, MetaAdsService
from app.services.scoring import get_score_oracle
from app.services.combinations import TargetingProvider


logger = logging.getLogger(__name__)


settings_for_cors = get_settings()
cors_allow_origins: List[str] = get_cors_origins(settings_for_cors)

if cors_allow_origins:
    logger.info("Allowing CORS origins: %s", cors_allow_origins)


# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="AdForge API", version="0.1.0")


@app.on_event("startup")
async def startup_event():
    """Initialize shared services on startup"""
    settings = get_settings()

    app.state.cache_service = CacheService(sweep_interval_seconds=settings.cache_sweep_interval_seconds)
    app.state.cache_service.start_sweeper()

    app.state.llm_service = LLMService(
        openai_api_key=settings.openai_api_key,
        anthropic_api_key=settings.anthropic_api_key,
        timeout=min(settings.llm_timeout_seconds, settings.oracle_timeout_seconds),
    )
    app.state.score_oracle = get_score_oracle(settings, app.state.llm_service)
    logger.info("Score oracle: %s", app.state.score_oracle.name)

    meta = None
    if settings.meta_access_token:
        meta = CachedMetaAdsService(
            MetaAdsService(settings.meta_access_token, base_url=settings.meta_graph_api_base),
            app.state.cache_service,
        )
    app.state.meta_ads_service = meta
    app.state.targeting_provider = TargetingProvider(meta)
    logger.info("Meta Graph API configured: %s", meta is not None)


@app.on_event("shutdown")
async def shutdown_event():
    cache = getattr(app.state, "cache_service", None)
    if cache is not None:
        await cache.stop_sweeper()


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api")
def api_info():
    """API information endpoint"""
    return {"message": "AdForge API", "version": "0.1.0"}


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Check if API and database are working"""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")


# Include combinations router
from app.routers import combinations
app.include_router(combinations.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
