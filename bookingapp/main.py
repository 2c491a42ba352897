import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import (
    DEFAULT_OCCURRENCES_AHEAD,
    DISPLAY_HORIZON_DAYS,
    FRONTEND_URL,
    MAX_OCCURRENCES_AHEAD,
)
from .database import Base, engine
from .domain.recurring import bookings_router, provider_router
from .domain.recurring import router as recurring_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Bookings API starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Database tables ready")
    except SQLAlchemyError as e:
        # Several workers may race to create the same tables
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"❌ Failed to create database tables: {e}")

    logger.info(
        f"📅 Recurring series: {DEFAULT_OCCURRENCES_AHEAD} rows by default, "
        f"at most {MAX_OCCURRENCES_AHEAD}, display horizon {DISPLAY_HORIZON_DAYS} days"
    )
    yield
    logger.info("Bookings API shutting down...")


app = FastAPI(title="Bookings API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"⚠️ Validation error for {request.method} {request.url.path}: {exc.errors()}")
    # ctx may hold the raw exception object, which is not JSON serializable
    errors = [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": errors})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} - Error: {e}")
        raise

    elapsed_ms = (time.time() - started) * 1000
    if response.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {response.status_code}")
    elif response.status_code == 207:
        logger.warning(f"⚠️ {request.method} {request.url.path} -> 207 partial ({elapsed_ms:.0f}ms)")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


# CORS Configuration
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")
    if origin.strip()
]

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(bookings_router)
app.include_router(recurring_router)
app.include_router(provider_router)


@app.get("/")
def root():
    return {"message": "Bookings API is running"}


@app.get("/health")
def health():
    """Liveness plus a database round trip"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"❌ Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "down"})
    return {"status": "healthy", "database": "up"}
