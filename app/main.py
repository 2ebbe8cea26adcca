"""
Alamany Dental Clinic API entry point
"""
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import api_router
from app.config import settings
from app.core.exceptions import ClinicException
from app.core.middleware import LoggingMiddleware
from app.database import close_db, init_db
from app.utils.cookies import clear_refresh_cookie
from app.utils.redis_client import throttle_redis_client

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _log_banner():
    base_url = f"http://{settings.HOST}:{settings.PORT}"
    logger.info("=" * 80)
    logger.info(f"🦷 {settings.APP_NAME} v{settings.APP_VERSION} [{settings.ENVIRONMENT}]")
    logger.info(f"🌐 Listening on {base_url} (docs at {base_url}/docs)")
    logger.info(f"🔒 CORS origins: {', '.join(settings.cors_origins_list)}")
    logger.info(f"✉️  Email verification required: {settings.REQUIRE_EMAIL_VERIFICATION}")
    logger.info(f"📨 SendGrid configured: {bool(settings.SENDGRID_API_KEY)}")
    logger.info("=" * 80)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables and open the throttle's Redis connection on startup;
    release both on shutdown. Redis is optional.
    """
    logger.info(f"Starting {settings.APP_NAME}...")

    try:
        await init_db()
        logger.info("Database ready")
    except Exception as e:
        logger.error(f"Database initialisation failed: {e}")
        raise

    try:
        await throttle_redis_client.connect()
    except Exception as redis_error:
        logger.warning(f"Redis unavailable, verification resends will not be throttled: {redis_error}")

    _log_banner()

    yield

    logger.info(f"Stopping {settings.APP_NAME}...")
    await throttle_redis_client.disconnect()
    await close_db()
    logger.info("Database engine disposed")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Authentication, sessions and user administration for the Alamany Dental Clinic platform",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Credentials must be allowed or browsers drop the refresh cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(LoggingMiddleware)


def error_response(
    status_code: int,
    message: str,
    code: str,
    details: Optional[Any] = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    """Render the uniform error envelope"""
    error: dict = {"code": code}
    if details is not None:
        error["details"] = details

    content: dict = {"success": False, "message": message, "error": error}
    if exc is not None and settings.ENVIRONMENT == "development":
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ClinicException)
async def clinic_exception_handler(request: Request, exc: ClinicException):
    """Typed application errors carry their own status and code"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")

    response = error_response(exc.status_code, exc.message, exc.code, exc.details, exc)
    if exc.clear_refresh_cookie:
        clear_refresh_cookie(response)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Schema violations in the body, query or path"""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "validation_error",
        details=details,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors such as unknown routes or wrong methods"""
    return error_response(exc.status_code, str(exc.detail), "http_error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        "internal_error",
        exc=exc,
    )


app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "throttle": "redis" if throttle_redis_client.is_connected else "disabled",
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
