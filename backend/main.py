import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import env
from api.api_keys.router import router as api_keys_router
from api.errors import register_exception_handlers
from api.fingerprints.router import router as fingerprints_router
from api.roles.router import router as roles_router
from api.tags.router import router as tags_router
from database import get_database_manager
from services.metrics import NullMetricsSink

logging.basicConfig(
    level=env.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fingerprint Trust API",
    description="Anonymous fingerprint identities, IP trust and role-gated API keys",
    version="1.0.0",
)

# Include routers
app.include_router(fingerprints_router)
app.include_router(roles_router)
app.include_router(tags_router)
app.include_router(api_keys_router)

register_exception_handlers(app)

# Swap for a real sink when metrics are shipped somewhere
app.state.metrics = NullMetricsSink()

# Initialize database manager
db_manager = get_database_manager()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize database connection and indexes on startup."""
    try:
        db_manager.connect()
        db_manager.client.admin.command("ping")
        db_manager.ensure_indexes()
        logger.info("MongoDB connection successful")
    except Exception:
        logger.exception("Startup failed")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Close database connection on shutdown."""
    db_manager.disconnect()
    logger.info("MongoDB connection closed")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to Fingerprint Trust API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        db_manager.client.admin.command("ping")
        db_status = "connected"
    except Exception:
        db_status = "disconnected"

    return {"status": "healthy", "database": db_status, "timestamp": datetime.now(timezone.utc)}
