import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .db import init_db, close_client
from .errors import AppError
from .middleware import LoggingMiddleware, SecurityHeadersMiddleware
from .routers.study_plans import router as study_plans_router
from .routers.resources import router as resources_router
from .routers.instances import router as instances_router
from .routers.user_progress import router as user_progress_router
from .routers.notifications import router as notifications_router
from .routers.users import router as users_router
from .routers.reviews import router as reviews_router
from .routers.cron import router as cron_router

logger = logging.getLogger(__name__)


# Lifespan context manager for startup and shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Initializing database connection...")
    try:
        # Idempotent; requests retry through ensure_db if this fails
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.warning(f"Database initialization warning: {str(e)}")

    yield

    await close_client()
    logger.info("Database connection closed")


app = FastAPI(
    title="Study Sync API",
    description="Backend API for collaborative study plans",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)


# Every error leaves the API as {"error": message}
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(study_plans_router)
app.include_router(resources_router)
app.include_router(instances_router)
app.include_router(user_progress_router)
app.include_router(notifications_router)
app.include_router(users_router)
app.include_router(reviews_router)
app.include_router(cron_router)


# Health check endpoints
@app.get("/")
async def root():
    return {"message": "Study Sync API is running!", "status": "healthy"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "studysync-api"}
