"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import database, ensure_indexes
from app.error_handlers import register_error_handlers
from app.logging_config import setup_logging
from app.routers import auth, content, courses, goals

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    setup_logging(settings.log_level, settings.log_format)
    await database.connect()
    await ensure_indexes(database.db)
    logger.info("EdPsych Connect API started")
    yield
    # Shutdown
    logger.info("EdPsych Connect API shutting down")
    await database.disconnect()


app = FastAPI(
    title="EdPsych Connect API",
    description="Backend API for educators, psychologists and families",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(courses.enrollments_router)
app.include_router(goals.router)
app.include_router(content.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "EdPsych Connect API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
