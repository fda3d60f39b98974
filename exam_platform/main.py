"""
exam_platform/main.py
FastAPI application: routers, error envelope, lifespan
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from exam_platform import __version__
from exam_platform.config import settings
from exam_platform.database import init_db, close_db
from exam_platform.errors import (
    ErrorCode,
    error_response,
    validation_error_response,
    internal_error_response,
    get_error_summary,
)
from exam_platform.exceptions import ExamPlatformError
from exam_platform.routes import routers
from exam_platform.tasks.expiry_sweep import start_sweep_task

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    sweep_task = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweep_task = start_sweep_task(settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        logger.info(f"✓ Expiry sweep running every {settings.EXPIRY_SWEEP_INTERVAL_SECONDS}s")

    yield

    logger.info("Shutting down application...")
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


app = FastAPI(
    title="Exam Platform API",
    description="Timed exam attempts, answer capture and auto-grading",
    version=__version__,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
    lifespan=lifespan
)

origins = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8000",
]
origins.extend(settings.ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(ExamPlatformError)
async def exam_platform_error_handler(request: Request, exc: ExamPlatformError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.kind} on {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.kind, exc.message, exc.code, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return validation_error_response(exc.errors())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")
    code = ErrorCode.NOT_FOUND if exc.status_code == status.HTTP_404_NOT_FOUND else ErrorCode.INVALID_INPUT
    return error_response(exc.status_code, "Error", str(exc.detail), code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    return internal_error_response(exc, request.url.path)


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "expiry_sweep_enabled": settings.EXPIRY_SWEEP_ENABLED,
        "version": __version__
    }


@app.get("/api/errors/health", tags=["Health"])
async def error_handling_health():
    return get_error_summary()


for router in routers:
    app.include_router(router)
