from contextlib import asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from inkwell.api import admin, auth, comments, posts, users
from inkwell.core.config import settings
from inkwell.core.errors import init_sentry, register_exception_handlers
from inkwell.core.logging_config import get_logger
from inkwell.db import create_db_and_tables
from inkwell.middleware.context import RequestContextMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Inkwell API starting", environment=settings.ENVIRONMENT)
    if not settings.SECRET_KEY:
        if settings.is_production:
            raise RuntimeError("SECRET_KEY must be set in production")
        logger.warning("SECRET_KEY is empty; tokens are not secure")

    init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT)
    create_db_and_tables()
    yield
    logger.info("Inkwell API stopped")


app = FastAPI(title=settings.PROJECT_NAME, openapi_url=f"{settings.API_PREFIX}/openapi.json", lifespan=lifespan)

# Set all CORS enabled origins
origins = [
    "http://localhost:5173",  # Vite default
    "http://localhost:3000",  # React default
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
    settings.FRONTEND_URL,  # Dynamic from env
]

# Clean up duplicates and empty strings
origins = list(set([o for o in origins if o]))

# GZip compression for responses > 1KB
app.add_middleware(cast(Any, GZipMiddleware), minimum_size=1000)

app.add_middleware(cast(Any, RequestContextMiddleware))

app.add_middleware(
    cast(Any, CORSMiddleware),
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

register_exception_handlers(app)

app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])
app.include_router(posts.router, prefix=f"{settings.API_PREFIX}/posts", tags=["posts"])
app.include_router(comments.router, prefix=f"{settings.API_PREFIX}/comments", tags=["comments"])
app.include_router(users.router, prefix=f"{settings.API_PREFIX}/users", tags=["users"])
app.include_router(admin.router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])


@app.get("/")
def root():
    return {"success": True, "message": "Welcome to the Inkwell API"}


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"success": True, "status": "healthy", "environment": settings.ENVIRONMENT}
