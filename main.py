import traceback
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import attachments, audit_logs, auth, leads, notes, organization, projects, roles, tasks, users
from api.deps import api_rate_limit
from core.config import Settings, get_settings
from core.database import Base, engine, get_db
from core.exceptions import CRMException, TooManyRequestsError, UnauthorizedError
from core.logging import get_logger, setup_logging
from core.rate_limit import create_rate_limiter
from middleware.correlation import ActorContextMiddleware, CorrelationIDMiddleware
from middleware.security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from repositories.base import is_unique_violation

logger = get_logger(__name__)

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    429: "TOO_MANY_REQUESTS",
}


def _error_body(
    settings: Settings,
    message: str,
    code: str,
    details: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, "code": code, "details": details or {}}
    if exc is not None and settings.debug and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(exc))
    return body


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Render every error as {"success": false, "message", "code", "details"}"""

    @app.exception_handler(CRMException)
    async def crm_exception_handler(request: Request, exc: CRMException):
        headers: dict[str, str] = {}
        if isinstance(exc, UnauthorizedError):
            headers["WWW-Authenticate"] = "Bearer"
        if isinstance(exc, TooManyRequestsError) and exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)

        body = exc.to_dict()
        if settings.debug and not settings.is_production:
            body["stack"] = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder(
                _error_body(
                    settings,
                    "Request validation failed",
                    "VALIDATION_ERROR",
                    {"errors": exc.errors()},
                )
            ),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Unhandled integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        if is_unique_violation(exc):
            return JSONResponse(
                status_code=409,
                content=_error_body(settings, "Resource already exists", "CONFLICT"),
            )
        return JSONResponse(
            status_code=400,
            content=_error_body(settings, "Request violates a data constraint", "VALIDATION_ERROR"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(settings, str(exc.detail), _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(settings, "Internal server error", "INTERNAL_SERVER_ERROR", exc=exc),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan events for application initialization and cleanup"""
        setup_logging(settings.log_level)

        # Production schema is managed by migrations
        if settings.auto_create_schema:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema created")

        logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
        yield

        await engine.dispose()
        logger.info("Database engine disposed")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.rate_limiter = create_rate_limiter(settings)
    register_exception_handlers(app, settings)

    # Middleware order matters - applied in reverse
    # 1. Request size limit (first check)
    app.add_middleware(RequestSizeLimitMiddleware, max_request_size=settings.max_request_size)

    # 2. Client IP and user agent for audit entries
    app.add_middleware(ActorContextMiddleware)

    # 3. Correlation ID for request tracing
    app.add_middleware(CorrelationIDMiddleware)

    # 4. Security headers
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)

    # 5. CORS middleware
    # Using allow_credentials=True requires specific origins (not wildcard)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "Retry-After"],
    )

    api_router = APIRouter(dependencies=[Depends(api_rate_limit)])
    api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
    api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
    api_router.include_router(users.router, prefix="/users", tags=["users"])
    api_router.include_router(organization.router, prefix="/organization", tags=["organization"])
    api_router.include_router(leads.router, prefix="/leads", tags=["leads"])
    api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
    api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
    api_router.include_router(notes.router, prefix="/notes", tags=["notes"])
    api_router.include_router(attachments.router, prefix="/attachments", tags=["attachments"])
    api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit"])
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
        }

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        """
        Health check endpoint for load balancers and monitoring.

        Returns:
        - 200 OK if the database answers
        - 503 Service Unavailable otherwise
        """
        checks: dict[str, Any] = {"api": True, "database": False}
        try:
            await db.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            logger.error("Health check failed: %s", e)
            checks["error"] = str(e)
            return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
        return {"status": "healthy", "checks": checks}

    return app


app = create_app()
