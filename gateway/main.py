import logging
import time
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from gateway.common.config import settings
from gateway.common.database import init_db, close_db
from gateway.common.exceptions import AppException, UnauthorizedException
from gateway.common.responses import error_response
from gateway.common.rate_limit import limiter
from gateway.common.startup import check_security_configuration
from gateway.domain.internal_request import SESSION_ID_HEADER
from gateway.domain.signing import resolve_internal_signing_secret
from gateway.session.dispatch import HttpDispatcher, LocalDispatcher
from gateway.session.registry import PartitionRegistry


# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    await init_db()
    check_security_configuration(settings)

    registry = PartitionRegistry(lambda: resolve_internal_signing_secret(settings))
    app.state.registry = registry
    if settings.session_service_url:
        app.state.dispatcher = HttpDispatcher(settings.session_service_url)
    else:
        app.state.dispatcher = LocalDispatcher(registry)

    yield

    # Shutdown
    await app.state.dispatcher.aclose()
    await registry.aclose()
    await close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit exceeded on a credential endpoint.

    Computes Retry-After from the window statistics of the limit that was hit.
    """
    limiter_instance = request.app.state.limiter
    view_rate_limit = getattr(request.state, "view_rate_limit", None)

    if view_rate_limit:
        window_stats = limiter_instance.limiter.get_window_stats(
            view_rate_limit[0], *view_rate_limit[1]
        )
        # window_stats[0] is the absolute reset timestamp
        retry_after = max(1, int(1 + window_stats[0] - time.time()))
    else:
        retry_after = 60

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_response(
            error="TooManyRequests",
            message="Too many attempts. Try again later.",
            data={"retry_after": retry_after},
        ),
        headers={"Retry-After": str(retry_after)},
    )


# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[SESSION_ID_HEADER],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle custom application exceptions."""
    if isinstance(exc, UnauthorizedException):
        error_type = "Unauthorized"
    else:
        error_type = exc.__class__.__name__.replace("Exception", "")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(error=error_type, message=exc.message),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies use the same envelope as other validation errors."""
    first_error = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first_error.get("loc", ()) if part != "body")
    message = first_error.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(
            error="Validation",
            message=f"{location}: {message}" if location else message,
        ),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(
            error="InternalServerError",
            message=str(exc) if settings.debug else "An error occurred"
        ),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "mcp_endpoint": "/mcp",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from gateway.api import mcp, internal
from gateway.api.v1 import auth, tokens, workspaces

app.include_router(mcp.router, tags=["mcp"])
app.include_router(internal.router, tags=["internal"], include_in_schema=False)
app.include_router(auth.router, prefix="/api/v1", tags=["auth"])
app.include_router(tokens.router, prefix="/api/v1", tags=["tokens"])
app.include_router(workspaces.router, prefix="/api/v1", tags=["workspaces"])
