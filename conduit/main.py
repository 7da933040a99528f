import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from conduit.cache import cache
from conduit.config import settings
from conduit.database import create_tables
from conduit.exceptions import ConduitError, conduit_exception_handler, validation_exception_handler
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles, tags, users

logging.basicConfig(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.CREATE_TABLES:
        await create_tables()
        logger.info("Database tables ensured")
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Redis unavailable, continuing without cache: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Conduit API",
    description="RealWorld-style social blogging backend: articles, comments, tags, profiles, follows and favorites",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error envelopes
app.add_exception_handler(ConduitError, conduit_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)

@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "version": VERSION,
        "env": settings.APP_ENV,
        "cache": cache.available,
    }
