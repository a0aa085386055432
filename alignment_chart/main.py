from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

# IMPORT ROUTERS
from alignment_chart.config import settings
from alignment_chart.core.dependencies import (
    get_avatar_resolver,
    get_enrichment_client,
    get_local_store,
    get_reconciler,
    get_remote_cache,
    get_scorer,
)
from alignment_chart.core.exceptions import PersistenceError
from alignment_chart.core.logging import configure_logging, get_logger
from alignment_chart.routers.analysis import router as analysis_router
from alignment_chart.routers.analysis import validation_exception_handler
from alignment_chart.routers.health import router as health_router
from alignment_chart.routers.placements import router as placements_router

logger = get_logger(__name__)


# SWAGGER UI - tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Analysis"},
    {"name": "Placements"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# REGISTER EXCEPTION HANDLERS
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# REGISTER ROUTERS
app.include_router(health_router)       # Health
app.include_router(analysis_router)     # Analysis
app.include_router(placements_router)   # Placements


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    configure_logging()
    logger.info("app_starting", name=settings.APP_NAME, env=settings.APP_ENV)

    reconciler = get_reconciler()
    try:
        await get_local_store().initialize()
        await reconciler.load()
    except PersistenceError as e:
        # Keep serving with an empty in-memory session
        logger.error("session_restore_failed", error=str(e))


# SHUTDOWN EVENT
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("app_stopping")
    # Pending debounced snapshot is dropped, not flushed
    get_reconciler().close()
    await get_avatar_resolver().close()
    await get_enrichment_client().close()
    await get_scorer().close()
    await get_remote_cache().close()


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "alignment_chart.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
