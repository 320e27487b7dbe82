"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan context manager opens the DB engine and configures logging on
     startup, and disposes the engine on shutdown.
  3. TenantResolutionMiddleware resolves the tenant from the Host header.
  4. Routers are registered with their URL prefixes.
  5. Exception handlers map the typed service errors to status codes and
     turn anything unexpected into a generic 500.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 4           # production (no --reload)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from saaskit.api.routes import (
    admin,
    admin_auth,
    auth,
    invitations,
    oauth,
    tenants,
    todos,
    users,
)
from saaskit.core.config import settings
from saaskit.core.errors import DALError, SignInError, ValidationError
from saaskit.core.logging import configure_logging, get_logger
from saaskit.db.session import dispose_engine, init_engine
from saaskit.middleware.tenant import TenantResolutionMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging
      - Open the async engine (process-wide connection pool)

    Shutdown:
      - Dispose the async engine (graceful connection pool drain)
    """
    configure_logging()
    init_engine()
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
        root_domain=settings.ROOT_DOMAIN,
    )
    yield
    logger.info("Shutting down, disposing DB engine")
    await dispose_engine()


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "body", []).append(err.get("msg", "Invalid value"))
    return errors


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant SaaS backend with subdomain tenant routing, JWT and "
            "OAuth sign-in, tenant-isolated data access and a platform admin panel."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ───────────────────────────────────────────────────────────
    app.add_middleware(TenantResolutionMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-tenant-slug"],
    )

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(oauth.router)
    app.include_router(users.router)
    app.include_router(tenants.router)
    app.include_router(todos.router)
    app.include_router(invitations.router)
    app.include_router(admin_auth.router)
    app.include_router(admin.router)

    # ── Exception Handlers ───────────────────────────────────────────────────

    @app.exception_handler(DALError)
    async def dal_error_handler(request: Request, exc: DALError) -> JSONResponse:
        content = {"detail": exc.message}
        if isinstance(exc, ValidationError) and exc.field_errors:
            content["field_errors"] = exc.field_errors
        if exc.status_code >= 500:
            logger.error(
                "Service error",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            content = {"detail": exc.default_message}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(SignInError)
    async def sign_in_error_handler(request: Request, exc: SignInError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.reason.value},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Validation failed", "field_errors": _field_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health Check ─────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
