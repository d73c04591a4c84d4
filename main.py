# Essential imports
import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from routers import auth, users
from contextlib import asynccontextmanager

# Import all models so Base.metadata knows every table
import models  # noqa: F401

from core.database import Base, engine
from core.exceptions import AppError

# Rate limiter imports
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging, get_logger
from middleware import RequestIDMiddleware, get_request_id
from core.config import settings
from fastapi.responses import JSONResponse
from utils.logger import sanitize_log_data, mask_token_path

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # No migrations in this service; tables are created if missing
    Base.metadata.create_all(bind=engine)
    logger.info("Application startup complete", extra={"event": "startup", "env": settings.ENV})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Marketplace Accounts API",
    description="Accounts, sessions and permissions for the multi-vendor marketplace",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    Tokens in paths and query strings are masked before logging.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000
    client_ip = request.client.host if request.client else "unknown"
    path = mask_token_path(request.url.path)

    logger.info(
        f'{client_ip} - "{request.method} {path} HTTP/1.1" {response.status_code}',
        extra={
            "method": request.method,
            "path": path,
            "query": sanitize_log_data(dict(request.query_params)),
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
            "client_ip": client_ip
        }
    )

    return response


# Added last so it wraps the logging middleware and its records carry the id
app.add_middleware(RequestIDMiddleware)


# Health check
@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Render service errors as {"detail": ...}.

    Session token failures share one public message; the specific reason
    (invalid, expired, stale, unknown user) is only logged.
    """
    logger.warning(
        exc.message,
        extra={
            "path": mask_token_path(request.url.path),
            "method": request.method,
            "error_type": type(exc).__name__,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_detail},
        headers=exc.headers
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions, log them with a stack trace and return
    a generic 500 without exposing internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": mask_token_path(request.url.path),
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "request_id": get_request_id(request)}
    )


# Including routers
app.include_router(auth.router)
app.include_router(users.router)


# Add rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
